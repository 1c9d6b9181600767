"""Registration, login, token refresh and admin user management"""

from conftest import TEST_PASSWORD, auth_headers


def register(client, email="new@example.com", password="secret123", name="New Customer"):
    return client.post("/auth/register", json={"name": name, "email": email, "password": password})


def test_register_returns_user_and_tokens(client, db_session):
    response = register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["user"]["email"] == "new@example.com"
    assert body["data"]["user"]["role"] == "customer"
    assert body["data"]["access_token"]
    assert body["data"]["refresh_token"]
    assert body["data"]["token_type"] == "bearer"


def test_register_rejects_duplicate_email(client, customer):
    response = register(client, email=customer.email)

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["message"] == "User with email already exists"


def test_register_rejects_short_password(client):
    response = register(client, password="123")

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert any(error["field"] == "password" for error in body["errors"])


def test_login_with_wrong_password(client, customer):
    response = client.post("/auth/login", json={"email": customer.email, "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid user credentials"


def test_login_unknown_email(client, db_session):
    response = client.post("/auth/login", json={"email": "ghost@example.com", "password": "whatever"})

    assert response.status_code == 404
    assert response.json()["message"] == "User does not exist"


def test_login_deactivated_account(client, make_user):
    user = make_user(is_active=False)
    response = client.post("/auth/login", json={"email": user.email, "password": TEST_PASSWORD})

    assert response.status_code == 403


def test_login_success_records_last_login(client, customer, db_session):
    response = client.post("/auth/login", json={"email": "PRIYA@example.com", "password": TEST_PASSWORD})

    assert response.status_code == 200
    assert response.json()["data"]["user"]["id"] == customer.id

    db_session.expire_all()
    assert db_session.get(type(customer), customer.id).last_login is not None


def test_refresh_token_rotation(client, customer):
    login = client.post("/auth/login", json={"email": customer.email, "password": TEST_PASSWORD}).json()["data"]

    refreshed = client.post("/auth/refresh-token", json={"refresh_token": login["refresh_token"]})
    assert refreshed.status_code == 200
    new_tokens = refreshed.json()["data"]
    assert new_tokens["refresh_token"] != login["refresh_token"]

    reused = client.post("/auth/refresh-token", json={"refresh_token": login["refresh_token"]})
    assert reused.status_code == 401


def test_refresh_rejects_access_token(client, customer):
    response = client.post("/auth/refresh-token", json={"refresh_token": auth_headers(customer)["Authorization"][7:]})

    assert response.status_code == 401


def test_me_requires_authentication(client, db_session):
    response = client.get("/auth/me")

    assert response.status_code == 401
    assert response.json()["success"] is False


def test_me_returns_current_user(client, customer, customer_headers):
    response = client.get("/auth/me", headers=customer_headers)

    assert response.status_code == 200
    assert response.json()["data"]["email"] == customer.email


def test_malformed_token_is_rejected(client, customer):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_change_password_requires_old_password(client, customer_headers):
    response = client.post(
        "/auth/change-password",
        json={"old_password": "not-my-password", "new_password": "brandnew1"},
        headers=customer_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid old password"


def test_admin_routes_reject_customers(client, customer_headers):
    response = client.get("/auth/users", headers=customer_headers)

    assert response.status_code == 403
    assert response.json()["message"] == "Admin access required"


def test_admin_lists_and_soft_deletes_users(client, admin_headers, customer, db_session):
    listed = client.get("/auth/users", params={"role": "customer"}, headers=admin_headers)
    assert listed.status_code == 200
    assert [u["email"] for u in listed.json()["data"]["users"]] == [customer.email]

    deleted = client.delete(f"/auth/users/{customer.id}", headers=admin_headers)
    assert deleted.status_code == 200

    db_session.expire_all()
    assert db_session.get(type(customer), customer.id).is_active is False


def test_admin_update_rejects_duplicate_email(client, admin_headers, customer, other_customer):
    response = client.put(
        f"/auth/users/{customer.id}", json={"email": other_customer.email}, headers=admin_headers
    )

    assert response.status_code == 409
