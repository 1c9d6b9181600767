import pytest

from conftest import SHIPPING_ADDRESS, auth_headers
from salon.models_catalog import Product
from salon.services.razorpay_service import compute_signature, razorpay_service, to_paise


@pytest.fixture
def stocked_cart(client, customer_headers, make_product):
    product = make_product()
    client.post("/cart/items", json={"product_id": product.id, "quantity": 2}, headers=customer_headers)
    return product


@pytest.fixture
def fake_gateway(monkeypatch):
    created = []

    async def create_order(amount, currency="INR", receipt=None):
        created.append({"amount": amount, "receipt": receipt})
        return {"id": "order_test123", "amount": to_paise(amount), "currency": currency}

    monkeypatch.setattr(razorpay_service, "create_order", create_order)
    return created


def place_order(client, headers, payment_method="cod", **extra):
    payload = {"payment_method": payment_method, "shipping_address": SHIPPING_ADDRESS, **extra}
    return client.post("/orders", json=payload, headers=headers)


def stock_of(db_session, product):
    db_session.expire_all()
    return db_session.get(Product, product.id).stock


def test_cod_order_reserves_stock_and_clears_cart(client, customer_headers, stocked_cart, db_session):
    response = place_order(client, customer_headers)

    assert response.status_code == 201
    data = response.json()["data"]
    order = data["order"]
    assert data["razorpay_order"] is None
    assert order["order_number"].startswith("ORD")
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["subtotal"] == 500.0
    assert order["shipping_charges"] == 0
    assert order["tax"] == 90
    assert order["total_amount"] == 590
    assert order["items"][0]["product_name"] == "Argan Oil Shampoo"
    assert order["shipping_address"]["phone"] == "+919876543210"
    assert order["can_be_cancelled"] is True

    assert stock_of(db_session, stocked_cart) == 8
    assert client.get("/cart", headers=customer_headers).json()["data"]["items"] == []


def test_empty_cart_cannot_be_ordered(client, customer_headers):
    response = place_order(client, customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Cart is empty"


def test_order_requires_shipping_address(client, customer_headers, stocked_cart):
    response = client.post("/orders", json={"payment_method": "cod"}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Shipping address is required"


def test_cart_shipping_address_is_used(client, customer_headers, stocked_cart):
    client.put("/cart/shipping-address", json=SHIPPING_ADDRESS, headers=customer_headers)

    response = client.post("/orders", json={"payment_method": "cod"}, headers=customer_headers)

    assert response.status_code == 201
    assert response.json()["data"]["order"]["shipping_address"]["city"] == "Bengaluru"


def test_cancel_restores_stock(client, customer_headers, stocked_cart, db_session):
    order = place_order(client, customer_headers).json()["data"]["order"]

    response = client.patch(f"/orders/{order['id']}/cancel", json={"reason": "Changed my mind"}, headers=customer_headers)

    assert response.status_code == 200
    cancelled = response.json()["data"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancellation_reason"] == "Changed my mind"
    assert cancelled["status_history"][-1]["status"] == "cancelled"
    assert stock_of(db_session, stocked_cart) == 10


def test_cancelled_order_cannot_be_cancelled_again(client, customer_headers, stocked_cart):
    order = place_order(client, customer_headers).json()["data"]["order"]
    client.patch(f"/orders/{order['id']}/cancel", headers=customer_headers)

    response = client.patch(f"/orders/{order['id']}/cancel", headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Order cannot be cancelled"


def test_other_customers_cannot_see_order(client, customer_headers, other_customer, stocked_cart):
    order = place_order(client, customer_headers).json()["data"]["order"]

    response = client.get(f"/orders/{order['id']}", headers=auth_headers(other_customer))

    assert response.status_code == 404


def test_razorpay_checkout_and_verification(client, customer_headers, stocked_cart, fake_gateway, db_session):
    response = place_order(client, customer_headers, payment_method="razorpay")

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["razorpay_order"]["id"] == "order_test123"
    assert data["razorpay_order"]["amount"] == 59000
    assert data["razorpay_order"]["key_id"] == "rzp_test_key"
    assert fake_gateway[0]["receipt"] == data["order"]["order_number"]
    # Gateway orders only take stock once the payment is verified
    assert stock_of(db_session, stocked_cart) == 10

    signature = compute_signature("rzp_test_secret", "order_test123", "pay_test456")
    verified = client.post(
        "/orders/verify-payment",
        json={
            "razorpay_order_id": "order_test123",
            "razorpay_payment_id": "pay_test456",
            "razorpay_signature": signature,
        },
        headers=customer_headers,
    )

    assert verified.status_code == 200
    body = verified.json()["data"]
    assert body["order"]["status"] == "confirmed"
    assert body["order"]["payment_status"] == "completed"
    assert body["order"]["can_be_cancelled"] is False
    assert body["receipt"]["payment_id"] == "pay_test456"
    assert body["receipt"]["amount"] == 590
    assert stock_of(db_session, stocked_cart) == 8

    again = client.post(
        "/orders/verify-payment",
        json={
            "razorpay_order_id": "order_test123",
            "razorpay_payment_id": "pay_test456",
            "razorpay_signature": signature,
        },
        headers=customer_headers,
    )
    assert again.status_code == 400
    assert again.json()["message"] == "Payment already verified for this order"


def test_forged_signature_is_rejected(client, customer_headers, stocked_cart, fake_gateway):
    place_order(client, customer_headers, payment_method="razorpay")

    response = client.post(
        "/orders/verify-payment",
        json={
            "razorpay_order_id": "order_test123",
            "razorpay_payment_id": "pay_test456",
            "razorpay_signature": "deadbeef",
        },
        headers=customer_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid payment signature"


def verify(client, headers, order_id="order_test123", payment_id="pay_test456"):
    return client.post(
        "/orders/verify-payment",
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": compute_signature("rzp_test_secret", order_id, payment_id),
        },
        headers=headers,
    )


def test_cancelled_order_payment_cannot_be_verified(client, customer_headers, stocked_cart, fake_gateway, db_session):
    order = place_order(client, customer_headers, payment_method="razorpay").json()["data"]["order"]
    client.patch(f"/orders/{order['id']}/cancel", headers=customer_headers)

    response = verify(client, customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot verify payment for a cancelled order"
    assert stock_of(db_session, stocked_cart) == 10
    current = client.get(f"/orders/{order['id']}", headers=customer_headers).json()["data"]
    assert current["status"] == "cancelled"
    assert current["payment_status"] != "completed"


def test_late_verification_flags_stock_shortfall(client, customer_headers, stocked_cart, fake_gateway, db_session):
    order = place_order(client, customer_headers, payment_method="razorpay").json()["data"]["order"]
    product = db_session.get(Product, stocked_cart.id)
    product.stock = 1
    db_session.commit()

    response = verify(client, customer_headers)

    assert response.status_code == 200
    details = response.json()["data"]["order"]["payment_details"]
    assert details["stock_shortfall"] == [{"product_id": stocked_cart.id, "requested": 2, "available": 1}]
    assert stock_of(db_session, stocked_cart) == 0
    assert order["order_number"] == response.json()["data"]["order"]["order_number"]


def test_admin_status_transitions(client, customer_headers, admin_headers, stocked_cart):
    order = place_order(client, customer_headers).json()["data"]["order"]
    url = f"/orders/admin/{order['id']}/status"

    skipped = client.patch(url, json={"status": "shipped"}, headers=admin_headers)
    assert skipped.status_code == 400
    assert skipped.json()["message"] == "Invalid status transition from pending to shipped"

    for status in ("confirmed", "processing"):
        assert client.patch(url, json={"status": status}, headers=admin_headers).status_code == 200

    shipped = client.patch(
        url, json={"status": "shipped", "tracking_number": "TRK123", "note": "Handed to courier"}, headers=admin_headers
    )
    assert shipped.status_code == 200
    assert shipped.json()["data"]["tracking_number"] == "TRK123"

    delivered = client.patch(url, json={"status": "delivered"}, headers=admin_headers).json()["data"]
    assert delivered["delivered_at"] is not None
    # Cash on delivery is settled when the parcel arrives
    assert delivered["payment_status"] == "completed"
    assert [entry["status"] for entry in delivered["status_history"]] == [
        "pending",
        "confirmed",
        "processing",
        "shipped",
        "delivered",
    ]

    tracking = client.get(f"/orders/{order['id']}/tracking", headers=customer_headers).json()["data"]
    assert tracking["tracking_number"] == "TRK123"
    assert tracking["status"] == "delivered"


def test_return_flow(client, customer_headers, admin_headers, stocked_cart, db_session):
    order = place_order(client, customer_headers).json()["data"]["order"]
    url = f"/orders/admin/{order['id']}/status"
    for status in ("confirmed", "processing", "shipped", "delivered"):
        client.patch(url, json={"status": status}, headers=admin_headers)

    requested = client.post(f"/orders/{order['id']}/return", json={"reason": "Wrong shade"}, headers=customer_headers)
    assert requested.status_code == 200
    assert requested.json()["data"]["return_status"] == "requested"

    approved = client.patch(f"/orders/admin/{order['id']}/return", json={"action": "approve"}, headers=admin_headers)
    assert approved.status_code == 200
    result = approved.json()["data"]
    assert result["status"] == "returned"
    assert result["return_status"] == "completed"
    assert result["payment_status"] == "refunded"
    assert stock_of(db_session, stocked_cart) == 10


def test_return_requires_delivery(client, customer_headers, stocked_cart):
    order = place_order(client, customer_headers).json()["data"]["order"]

    response = client.post(f"/orders/{order['id']}/return", json={"reason": "Too late"}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Only delivered orders can be returned"


def test_my_orders_and_admin_stats(client, customer_headers, admin_headers, stocked_cart):
    place_order(client, customer_headers)

    mine = client.get("/orders/my-orders", headers=customer_headers).json()["data"]
    assert len(mine["orders"]) == 1
    assert mine["pagination"]["total"] == 1

    stats = client.get("/orders/admin/stats", headers=admin_headers).json()["data"]
    assert stats["overview"]["total_orders"] == 1
    assert stats["by_status"]["pending"]["count"] == 1
