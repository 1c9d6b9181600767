import pytest

from salon.services import storage_service

IMAGE = {
    "title": "Balayage on long hair",
    "category": "hair",
    "tags": ["Balayage", "Color"],
    "image_url": "https://cdn.example.com/gallery/balayage.jpg",
}


@pytest.fixture
def uploaded(monkeypatch):
    calls = {"uploaded": [], "deleted": []}

    async def upload_image(file, folder):
        calls["uploaded"].append((file.filename, folder))
        key = f"{folder}/test-{file.filename}"
        return key, f"https://cdn.example.com/{key}"

    def delete_image(key):
        calls["deleted"].append(key)
        return True

    monkeypatch.setattr(storage_service, "upload_image", upload_image)
    monkeypatch.setattr(storage_service, "delete_image", delete_image)
    return calls


def create(client, headers, **overrides):
    return client.post("/gallery", json={**IMAGE, **overrides}, headers=headers)


def test_create_from_url_normalizes_tags(client, admin_headers):
    response = create(client, admin_headers)

    assert response.status_code == 201
    assert response.json()["data"]["tags"] == ["balayage", "color"]


def test_upload_stores_file(client, admin_headers, uploaded):
    response = client.post(
        "/gallery/upload/single",
        files={"file": ("bridal.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
        data={"title": "Bridal look", "category": "makeup", "tags": "bridal, party"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    image = response.json()["data"]
    assert image["image_url"] == "https://cdn.example.com/gallery/test-bridal.jpg"
    assert image["tags"] == ["bridal", "party"]
    assert uploaded["uploaded"] == [("bridal.jpg", "gallery")]


def test_upload_without_storage_is_unavailable(client, admin_headers):
    response = client.post(
        "/gallery/upload/single",
        files={"file": ("bridal.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
        data={"title": "Bridal look"},
        headers=admin_headers,
    )

    assert response.status_code == 503


def test_filter_by_tags(client, admin_headers):
    create(client, admin_headers)
    create(client, admin_headers, title="French tips", category="nails", tags=["nail-art"])

    tagged = client.get("/gallery", params={"tags": "color,ombre"}).json()["data"]

    assert [i["title"] for i in tagged["images"]] == ["Balayage on long hair"]
    assert tagged["pagination"]["total"] == 1


def test_viewing_counts_views(client, admin_headers):
    image = create(client, admin_headers).json()["data"]

    client.get(f"/gallery/{image['id']}")
    viewed = client.get(f"/gallery/{image['id']}").json()["data"]

    assert viewed["views"] == 2


def test_soft_delete_hides_image(client, admin_headers, uploaded):
    image = create(client, admin_headers).json()["data"]

    assert client.delete(f"/gallery/{image['id']}", headers=admin_headers).status_code == 200

    assert client.get(f"/gallery/{image['id']}").status_code == 404
    assert uploaded["deleted"] == []


def test_permanent_delete_removes_stored_file(client, admin_headers, uploaded):
    image = client.post(
        "/gallery/upload/single",
        files={"file": ("cut.png", b"\x89PNG fake", "image/png")},
        data={"title": "Pixie cut"},
        headers=admin_headers,
    ).json()["data"]

    response = client.delete(f"/gallery/{image['id']}", params={"permanent": True}, headers=admin_headers)

    assert response.status_code == 200
    assert uploaded["deleted"] == ["gallery/test-cut.png"]


def test_bulk_update_reports_missing_ids(client, admin_headers):
    image = create(client, admin_headers).json()["data"]

    response = client.put(
        "/gallery/bulk/update", json={"image_ids": [image["id"], 999], "is_featured": True}, headers=admin_headers
    )

    data = response.json()["data"]
    assert data["updated_count"] == 1
    assert data["not_found"] == [999]
    featured = client.get("/gallery/featured/images").json()["data"]["images"]
    assert [i["id"] for i in featured] == [image["id"]]


def test_gallery_admin_requires_admin(client, customer_headers):
    assert create(client, customer_headers).status_code == 403
