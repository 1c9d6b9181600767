def add(client, headers, product_id, quantity=1):
    return client.post("/cart/items", json={"product_id": product_id, "quantity": quantity}, headers=headers)


def test_empty_cart_is_created_on_first_read(client, customer_headers):
    response = client.get("/cart", headers=customer_headers)

    assert response.status_code == 200
    cart = response.json()["data"]
    assert cart["items"] == []
    assert cart["total_amount"] == 0
    assert cart["final_amount"] == 0


def test_add_item_snapshots_price(client, customer_headers, make_product):
    product = make_product()
    response = add(client, customer_headers, product.id, 2)

    assert response.status_code == 201
    cart = response.json()["data"]
    assert len(cart["items"]) == 1
    line = cart["items"][0]
    assert line["price"] == 250.0
    assert line["quantity"] == 2
    assert line["line_total"] == 500.0
    assert line["product"]["name"] == "Argan Oil Shampoo"
    assert cart["total_items"] == 2
    assert cart["total_amount"] == 500.0


def test_adding_same_product_merges_lines(client, customer_headers, make_product):
    product = make_product()
    add(client, customer_headers, product.id, 1)
    cart = add(client, customer_headers, product.id, 3).json()["data"]

    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 4
    assert cart["total_amount"] == 1000.0


def test_discounted_product_uses_discounted_price(client, customer_headers, make_product):
    product = make_product(price=400.0, discount=25)
    cart = add(client, customer_headers, product.id).json()["data"]

    assert cart["items"][0]["price"] == 300.0


def test_insufficient_stock(client, customer_headers, make_product):
    product = make_product(stock=2)
    response = add(client, customer_headers, product.id, 3)

    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient stock. Only 2 available"


def test_inactive_product_cannot_be_added(client, customer_headers, make_product):
    product = make_product(is_active=False)
    response = add(client, customer_headers, product.id)

    assert response.status_code == 400


def test_update_and_remove_items(client, customer_headers, make_product):
    shampoo = make_product()
    serum = make_product(name="Vitamin C Serum", category="skin_care", price=600.0)
    add(client, customer_headers, shampoo.id, 1)
    add(client, customer_headers, serum.id, 1)

    updated = client.put(f"/cart/items/{shampoo.id}", json={"quantity": 3}, headers=customer_headers).json()["data"]
    assert updated["total_items"] == 4
    assert updated["total_amount"] == 1350.0

    removed = client.delete(f"/cart/items/{serum.id}", headers=customer_headers).json()["data"]
    assert [item["product_id"] for item in removed["items"]] == [shampoo.id]
    assert removed["total_amount"] == 750.0


def test_update_to_zero_removes_line(client, customer_headers, make_product):
    product = make_product()
    add(client, customer_headers, product.id, 2)

    cart = client.put(f"/cart/items/{product.id}", json={"quantity": 0}, headers=customer_headers).json()["data"]

    assert cart["items"] == []
    assert cart["total_amount"] == 0


def test_remove_missing_item(client, customer_headers):
    response = client.delete("/cart/items/999", headers=customer_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Item not found in cart"


def test_apply_percentage_discount(client, customer_headers, make_product):
    product = make_product()
    add(client, customer_headers, product.id, 2)

    response = client.post("/cart/discount", json={"code": "welcome10"}, headers=customer_headers)

    assert response.status_code == 200
    cart = response.json()["data"]
    assert cart["discount_code"] == "WELCOME10"
    assert cart["discount"] == 50
    assert cart["final_amount"] == 450.0


def test_invalid_discount_code(client, customer_headers, make_product):
    product = make_product()
    add(client, customer_headers, product.id, 2)

    response = client.post("/cart/discount", json={"code": "BOGUS"}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid discount code"


def test_discount_minimum_not_met(client, customer_headers, make_product):
    product = make_product()
    add(client, customer_headers, product.id, 1)

    response = client.post("/cart/discount", json={"code": "SAVE50"}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Minimum order amount of 500 required"


def test_discount_dropped_when_cart_falls_below_minimum(client, customer_headers, make_product):
    product = make_product()
    add(client, customer_headers, product.id, 2)
    client.post("/cart/discount", json={"code": "SAVE50"}, headers=customer_headers)

    cart = client.put(f"/cart/items/{product.id}", json={"quantity": 1}, headers=customer_headers).json()["data"]

    assert cart["discount_code"] is None
    assert cart["discount"] == 0
    assert cart["final_amount"] == 250.0


def test_summary_includes_shipping_and_tax(client, customer_headers, make_product):
    product = make_product()
    add(client, customer_headers, product.id, 2)
    client.post("/cart/discount", json={"code": "WELCOME10"}, headers=customer_headers)

    summary = client.get("/cart/summary", headers=customer_headers).json()["data"]

    assert summary["total_amount"] == 500.0
    assert summary["discount"] == 50
    assert summary["shipping_charges"] == 50
    assert summary["tax"] == 81
    assert summary["estimated_total"] == 581
    assert summary["unique_items"] == 1
    assert summary["has_shipping_address"] is False


def test_clear_cart(client, customer_headers, make_product):
    product = make_product()
    add(client, customer_headers, product.id, 2)

    cart = client.delete("/cart", headers=customer_headers).json()["data"]

    assert cart["items"] == []
    assert cart["total_items"] == 0
