from conftest import auth_headers

SERVICE = {"name": "Gel Manicure", "duration": 45, "price": 650, "category": "nails"}


# ============================================================================
# SERVICES & STYLISTS
# ============================================================================


def test_admin_creates_service(client, admin_headers):
    response = client.post("/services", json=SERVICE, headers=admin_headers)

    assert response.status_code == 201
    service = response.json()["data"]
    assert service["name"] == "Gel Manicure"
    assert service["available_at_salon"] is True

    listed = client.get("/services", params={"category": "nails"}).json()["data"]
    assert listed["total"] == 1


def test_service_names_are_unique_case_insensitively(client, admin_headers):
    client.post("/services", json=SERVICE, headers=admin_headers)

    response = client.post("/services", json={**SERVICE, "name": "gel manicure"}, headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["message"] == "Service with this name already exists"


def test_customer_cannot_create_service(client, customer_headers):
    response = client.post("/services", json=SERVICE, headers=customer_headers)

    assert response.status_code == 403


def test_service_must_be_offered_somewhere(client, admin_headers):
    payload = {**SERVICE, "available_at_home": False, "available_at_salon": False}

    response = client.post("/services", json=payload, headers=admin_headers)

    assert response.status_code == 400


def test_inactive_service_hidden_from_public(client, admin_headers, make_service):
    service = make_service(is_active=False)

    assert client.get(f"/services/{service.id}").status_code == 404
    assert client.get(f"/services/{service.id}", headers=admin_headers).status_code == 200


def test_stylist_working_hours_are_validated(client, admin_headers):
    payload = {
        "name": "Ravi Verma",
        "email": "ravi@salon.example.com",
        "working_hours": {"start": "18:00", "end": "09:00"},
    }

    response = client.post("/stylists", json=payload, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"


def test_stylist_email_is_unique(client, admin_headers, make_stylist):
    stylist = make_stylist()

    response = client.post("/stylists", json={"name": "Someone Else", "email": stylist.email}, headers=admin_headers)

    assert response.status_code == 409


# ============================================================================
# PRODUCTS
# ============================================================================


def test_product_listing_filters_and_paginates(client, make_product):
    make_product(name="Argan Oil Shampoo", price=250.0)
    make_product(name="Keratin Mask", price=900.0)
    make_product(name="Nail Kit", category="nail_care", price=400.0, stock=0)

    hair = client.get("/products", params={"category": "hair_care", "sort_by": "price", "sort_order": "asc"}).json()["data"]
    assert [p["name"] for p in hair["products"]] == ["Argan Oil Shampoo", "Keratin Mask"]

    in_stock = client.get("/products", params={"in_stock": True}).json()["data"]
    assert in_stock["pagination"]["total"] == 2

    paged = client.get("/products", params={"limit": 1, "page": 2}).json()["data"]
    assert len(paged["products"]) == 1
    assert paged["pagination"]["total_pages"] == 3
    assert paged["pagination"]["has_prev"] is True


def test_product_sku_must_be_unique(client, admin_headers):
    payload = {"name": "Hair Serum", "category": "hair_care", "price": 499, "sku": "hs-01"}
    created = client.post("/products", json=payload, headers=admin_headers)
    assert created.json()["data"]["sku"] == "HS-01"

    response = client.post("/products", json={**payload, "name": "Other Serum"}, headers=admin_headers)

    assert response.status_code == 409


def test_stock_operations(client, admin_headers, make_product):
    product = make_product(stock=5)
    url = f"/products/{product.id}/stock"

    added = client.patch(url, json={"quantity": 3, "operation": "add"}, headers=admin_headers).json()["data"]
    assert added["stock"] == 8

    too_many = client.patch(url, json={"quantity": 20, "operation": "subtract"}, headers=admin_headers)
    assert too_many.status_code == 400
    assert too_many.json()["message"] == "Insufficient stock. Current stock is 8"

    reset = client.patch(url, json={"quantity": 2, "operation": "set"}, headers=admin_headers).json()["data"]
    assert reset["stock"] == 2
    assert reset["stock_status"] == "low_stock"


def test_low_stock_report(client, admin_headers, make_product):
    make_product(name="Almost Gone", stock=2)
    make_product(name="Plenty", stock=50)

    report = client.get("/products/admin/low-stock", headers=admin_headers).json()["data"]

    assert [p["name"] for p in report["products"]] == ["Almost Gone"]


def test_inactive_product_visible_to_admin_only(client, admin_headers, make_product):
    product = make_product(is_active=False)

    assert client.get(f"/products/{product.id}").status_code == 404
    assert client.get(f"/products/{product.id}", headers=admin_headers).status_code == 200


# ============================================================================
# REVIEWS
# ============================================================================


def test_review_moderation_updates_product_rating(client, customer_headers, other_customer, admin_headers, make_product):
    product = make_product()

    first = client.post(
        f"/products/{product.id}/reviews", json={"rating": 5, "comment": "Lovely scent"}, headers=customer_headers
    )
    assert first.status_code == 201
    assert first.json()["data"]["is_approved"] is False

    second = client.post(
        f"/products/{product.id}/reviews",
        json={"rating": 4, "comment": "Works well"},
        headers=auth_headers(other_customer),
    )

    # Pending reviews are not public
    public = client.get(f"/products/{product.id}/reviews").json()["data"]
    assert public["reviews"] == []
    assert public["total_reviews"] == 0

    for review in (first, second):
        approved = client.patch(f"/reviews/admin/{review.json()['data']['id']}/approve", headers=admin_headers)
        assert approved.status_code == 200

    public = client.get(f"/products/{product.id}/reviews").json()["data"]
    assert public["total_reviews"] == 2
    assert public["average_rating"] == 4.5

    detail = client.get(f"/products/{product.id}").json()["data"]
    assert detail["rating_average"] == 4.5
    assert detail["rating_count"] == 2


def test_duplicate_review_is_rejected(client, customer_headers, make_product):
    product = make_product()
    client.post(f"/products/{product.id}/reviews", json={"rating": 5, "comment": "Great"}, headers=customer_headers)

    response = client.post(
        f"/products/{product.id}/reviews", json={"rating": 3, "comment": "Changed my mind"}, headers=customer_headers
    )

    assert response.status_code == 409
    assert response.json()["message"] == "You have already reviewed this product"


def test_deleting_review_recomputes_rating(client, customer_headers, admin_headers, make_product):
    product = make_product()
    review = client.post(
        f"/products/{product.id}/reviews", json={"rating": 2, "comment": "Not for me"}, headers=customer_headers
    ).json()["data"]
    client.patch(f"/reviews/admin/{review['id']}/approve", headers=admin_headers)

    deleted = client.delete(f"/reviews/{review['id']}", headers=customer_headers)
    assert deleted.status_code == 200

    detail = client.get(f"/products/{product.id}").json()["data"]
    assert detail["rating_count"] == 0
    assert detail["rating_average"] == 0


def test_service_reviews_via_submit(client, customer_headers, make_service):
    service = make_service()

    response = client.post(
        "/reviews/submit",
        json={"target_type": "service", "target_id": service.id, "rating": 5, "comment": "Best haircut in town"},
        headers=customer_headers,
    )

    assert response.status_code == 201
    assert response.json()["data"]["target_type"] == "service"


def test_review_comment_is_sanitized(client, customer_headers, make_product):
    product = make_product()

    review = client.post(
        f"/products/{product.id}/reviews",
        json={"rating": 4, "comment": "<script>alert(1)</script>Nice"},
        headers=customer_headers,
    ).json()["data"]

    assert "<script>" not in review["comment"]
    assert "Nice" in review["comment"]
