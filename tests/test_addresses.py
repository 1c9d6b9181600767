from conftest import auth_headers

ADDRESS = {
    "label": "Home",
    "street": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}


def create(client, headers, **overrides):
    return client.post("/addresses", json={**ADDRESS, **overrides}, headers=headers)


def addresses_by_id(client, headers):
    listed = client.get("/addresses", headers=headers).json()["data"]["addresses"]
    return {a["id"]: a for a in listed}


def test_first_address_becomes_default(client, customer_headers):
    response = create(client, customer_headers)

    assert response.status_code == 201
    address = response.json()["data"]
    assert address["is_default"] is True
    assert "Bengaluru" in address["formatted_address"]


def test_second_address_is_not_default(client, customer_headers):
    create(client, customer_headers)
    office = create(client, customer_headers, label="Office", address_type="work").json()["data"]

    assert office["is_default"] is False


def test_set_default_moves_flag(client, customer_headers):
    home = create(client, customer_headers).json()["data"]
    office = create(client, customer_headers, label="Office").json()["data"]

    response = client.patch(f"/addresses/{office['id']}/set-default", headers=customer_headers)

    assert response.status_code == 200
    current = addresses_by_id(client, customer_headers)
    assert current[office["id"]]["is_default"] is True
    assert current[home["id"]]["is_default"] is False

    default = client.get("/addresses/default/current", headers=customer_headers).json()["data"]
    assert default["id"] == office["id"]


def test_creating_with_default_flag_replaces_default(client, customer_headers):
    home = create(client, customer_headers).json()["data"]
    office = create(client, customer_headers, label="Office", is_default=True).json()["data"]

    current = addresses_by_id(client, customer_headers)
    assert current[office["id"]]["is_default"] is True
    assert current[home["id"]]["is_default"] is False


def test_deleting_default_promotes_another(client, customer_headers):
    home = create(client, customer_headers).json()["data"]
    office = create(client, customer_headers, label="Office").json()["data"]

    response = client.delete(f"/addresses/{home['id']}", headers=customer_headers)

    assert response.status_code == 200
    current = addresses_by_id(client, customer_headers)
    assert list(current) == [office["id"]]
    assert current[office["id"]]["is_default"] is True


def test_invalid_pincode(client, customer_headers):
    response = create(client, customer_headers, pincode="012345")

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "pincode"


def test_validate_endpoint_does_not_save(client, customer_headers):
    response = client.post("/addresses/validate", json={**ADDRESS, "pincode": "12"}, headers=customer_headers)

    assert response.status_code == 200
    result = response.json()["data"]
    assert result["valid"] is False
    assert result["errors"][0]["field"] == "pincode"
    assert client.get("/addresses", headers=customer_headers).json()["data"]["total"] == 0


def test_addresses_are_private(client, customer_headers, other_customer):
    home = create(client, customer_headers).json()["data"]

    response = client.get(f"/addresses/{home['id']}", headers=auth_headers(other_customer))

    assert response.status_code == 404
