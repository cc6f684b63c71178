import pytest

from config import PLACEHOLDER_IMAGE_URL
from conftest import PRODUCT_ID, USER_ID, product_row
from routes.admin_products import diff_fields

BASE = "/api/admin/products"

NEW_PRODUCT = {
    "name": "Steel Bottle",
    "description": "Insulated bottle",
    "category": "Drinkware",
    "sku": "DRK-BTL-001",
    "price": 19.0,
}


def test_requires_authentication(client):
    assert client.get(BASE).status_code == 401


def test_viewer_cannot_create(client, auth_headers):
    resp = client.post(BASE, json=NEW_PRODUCT, headers=auth_headers(role="viewer"))
    assert resp.status_code == 403


def test_viewer_can_list(client, fake_db, auth_headers):
    listing = fake_db("list_admin_gift_items", {"products": [], "total": 0})
    resp = client.get(BASE, params={"limit": 9999}, headers=auth_headers(role="viewer"))
    assert resp.status_code == 200
    assert listing.calls[0][1]["limit"] == 500


@pytest.mark.parametrize("body,detail", [
    ({"name": "x", "description": "y"}, "Name, description, and category are required"),
    ({"name": "x", "description": "y", "category": "spaceships"}, "Invalid category: spaceships"),
    ({"name": "x", "description": "y", "category": "bags", "status": "gone"}, "Invalid status: gone"),
    ({"name": "x", "description": "y", "category": "bags", "sku": "bad sku!"},
     "SKU can only contain letters, numbers, and hyphens"),
])
def test_create_validation(client, auth_headers, body, detail):
    resp = client.post(BASE, json=body, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json()["detail"] == detail


def test_create_rejects_duplicate_sku(client, fake_db, auth_headers):
    fake_db("sku_exists", True)
    resp = client.post(BASE, json=NEW_PRODUCT, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.json()["detail"] == "SKU already exists"


def test_create_product(client, fake_db, auth_headers, audit_entries):
    fake_db("sku_exists", False)
    create = fake_db("create_gift_item", lambda data, created_by: {"id": PRODUCT_ID, **data})

    resp = client.post(BASE, json=NEW_PRODUCT, headers=auth_headers())

    assert resp.status_code == 201
    product = resp.json()["product"]
    assert product["category"] == "drinkware"
    assert product["status"] == "active"
    assert product["horizontal_enabled"] is True
    assert create.calls[0][1]["created_by"] == USER_ID
    entry = audit_entries.calls[0][0][0]
    assert entry["action"] == "PRODUCT_CREATE"
    assert entry["resource_id"] == PRODUCT_ID
    assert entry["new_values"]["sku"] == "DRK-BTL-001"


def test_create_without_sku_gets_fallback(client, fake_db, auth_headers):
    fake_db("create_gift_item", lambda data, created_by: {"id": PRODUCT_ID, **data})
    body = {k: v for k, v in NEW_PRODUCT.items() if k != "sku"}
    resp = client.post(BASE, json=body, headers=auth_headers())
    assert resp.json()["product"]["sku"].startswith("DRI-")


def test_create_without_images_uses_placeholder(client, fake_db, auth_headers):
    create = fake_db("create_gift_item", lambda data, created_by: {"id": PRODUCT_ID, **data})
    resp = client.post(BASE, json={"name": "Mug", "description": "d", "category": "drinkware"},
                       headers=auth_headers())
    assert resp.status_code == 201
    data = create.calls[0][0][0]
    assert data["base_image_url"] == PLACEHOLDER_IMAGE_URL
    assert data["primary_image_url"] is None


def test_create_prefers_primary_then_thumbnail_image(client, fake_db, auth_headers):
    fake_db("sku_exists", False)
    create = fake_db("create_gift_item", lambda data, created_by: {"id": PRODUCT_ID, **data})
    client.post(BASE, json={**NEW_PRODUCT, "thumbnail_url": "/uploads/gift-items/t.png"}, headers=auth_headers())
    assert create.calls[0][0][0]["base_image_url"] == "/uploads/gift-items/t.png"


def test_bulk_delete(client, fake_db, auth_headers, audit_entries):
    other = "9d8c7b6a-5f4e-4d3c-2b1a-0f9e8d7c6b5a"
    fake_db("get_gift_items_by_ids", [product_row(), product_row(id=other, name="Tote")])
    delete = fake_db("soft_delete_gift_items", 2)

    resp = client.post(f"{BASE}/bulk-delete", json={"productIds": [PRODUCT_ID, other, PRODUCT_ID]},
                       headers=auth_headers())

    assert resp.status_code == 200
    assert resp.json()["deletedCount"] == 2
    assert delete.calls[0][0] == ([PRODUCT_ID, other], USER_ID)
    assert [c[0][0]["action"] for c in audit_entries.calls] == ["PRODUCT_BULK_DELETE"] * 2


def test_bulk_delete_requires_ids_and_existing_products(client, fake_db, auth_headers):
    assert client.post(f"{BASE}/bulk-delete", json={"productIds": []}, headers=auth_headers()).status_code == 400
    fake_db("get_gift_items_by_ids", [])
    resp = client.post(f"{BASE}/bulk-delete", json={"productIds": [PRODUCT_ID]}, headers=auth_headers())
    assert resp.status_code == 404


def test_update_records_changed_fields(client, fake_db, auth_headers, audit_entries):
    fake_db("get_gift_item", product_row())
    update = fake_db("update_gift_item", lambda item_id, fields, updated_by: product_row(**fields))

    body = {"name": "Ceramic Mug XL", "description": "A sturdy mug", "category": "drinkware", "price": 14.0}
    resp = client.put(f"{BASE}/{PRODUCT_ID}", json=body, headers=auth_headers())

    assert resp.status_code == 200
    fields = update.calls[0][0][1]
    assert fields["sku"] == "DRK-MUG-001"
    assert fields["tags"] == ["mug"]
    entry = audit_entries.calls[0][0][0]
    assert entry["action"] == "PRODUCT_UPDATE"
    assert entry["details"]["changes"] == {
        "name": {"from": "Ceramic Mug", "to": "Ceramic Mug XL"},
        "price": {"from": 12.5, "to": 14.0},
    }


def test_update_without_changes_is_not_audited(client, fake_db, auth_headers, audit_entries):
    fake_db("get_gift_item", product_row())
    fake_db("update_gift_item", product_row())
    body = {"name": "Ceramic Mug", "description": "A sturdy mug", "category": "drinkware"}
    assert client.put(f"{BASE}/{PRODUCT_ID}", json=body, headers=auth_headers()).status_code == 200
    assert audit_entries.calls == []


def test_update_missing_product(client, fake_db, auth_headers):
    fake_db("get_gift_item", None)
    body = {"name": "a", "description": "b", "category": "bags"}
    assert client.put(f"{BASE}/{PRODUCT_ID}", json=body, headers=auth_headers()).status_code == 404


def test_delete_is_soft(client, fake_db, auth_headers, audit_entries):
    fake_db("get_gift_item", product_row())
    delete = fake_db("soft_delete_gift_items", 1)
    resp = client.delete(f"{BASE}/{PRODUCT_ID}", headers=auth_headers())
    assert resp.status_code == 200
    assert delete.calls[0][0] == ([PRODUCT_ID], USER_ID)
    assert audit_entries.calls[0][0][0]["old_values"] == {"status": "active", "sku": "DRK-MUG-001"}


def test_duplicate_creates_inactive_copy(client, fake_db, auth_headers):
    fake_db("get_gift_item", product_row())
    fake_db("create_gift_item", lambda data, created_by: {"id": "copy", **data})
    resp = client.post(f"{BASE}/{PRODUCT_ID}/duplicate", headers=auth_headers())
    assert resp.status_code == 201
    product = resp.json()["product"]
    assert product["name"] == "Ceramic Mug (Copy)"
    assert product["status"] == "inactive"
    assert product["sku"].startswith("DRK-MUG-001-COPY-")


def test_diff_fields_ignores_untracked():
    old = {"name": "a", "horizontal_enabled": True}
    assert diff_fields(old, {"name": "b", "horizontal_enabled": False}) == {"name": {"from": "a", "to": "b"}}
