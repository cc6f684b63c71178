from conftest import USER_ID
from csv_import import CSV_HEADERS
from routes.bulk_import import row_to_item

BASE = "/api/admin/products/bulk-import"

CSV = (
    "name,description,category,sku,tags\n"
    "Mug,Ceramic mug,drinkware,MUG-001,coffee;gift\n"
    "Tote,Canvas tote,bags,,\n"
)


def test_template_download(client, auth_headers):
    resp = client.get(f"{BASE}/template", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "product-import-template.csv" in resp.headers["content-disposition"]
    assert resp.text.splitlines()[0] == ",".join(CSV_HEADERS)


def test_viewer_cannot_import(client, auth_headers):
    resp = client.post(BASE, json={"products": [{"name": "x"}]}, headers=auth_headers(role="viewer"))
    assert resp.status_code == 403


def test_json_import_reports_row_errors(client, fake_db, auth_headers, audit_entries):
    fake_db("sku_exists", lambda sku: sku == "TAKEN-1")
    create = fake_db("create_gift_item", {"id": "new"})

    resp = client.post(BASE, headers=auth_headers(), json={"products": [
        {"name": "Mug", "description": "Ceramic", "category": "drinkware", "tags": ["a", " ", "b"]},
        {"name": "Cap", "description": "Cotton cap", "category": "apparel", "sku": "TAKEN-1"},
        {"name": "No category", "description": "x"},
    ]})

    body = resp.json()
    assert resp.status_code == 200
    assert (body["success"], body["imported"], body["failed"]) == (False, 1, 2)
    assert body["errors"] == [
        "Row 2: SKU 'TAKEN-1' already exists",
        "Row 3: name, description and category are required",
    ]
    assert body["rollbackId"].startswith("bulk_import_")
    assert body["rollbackId"].endswith(f"_{USER_ID}")

    item = create.calls[0][0][0]
    assert item["tags"] == ["a", "b"]
    assert item["import_batch_id"] == body["rollbackId"]
    assert audit_entries.calls[0][0][0]["action"] == "BULK_IMPORT"


def test_csv_upload(client, fake_db, auth_headers):
    fake_db("sku_exists", False)
    create = fake_db("create_gift_item", {"id": "new"})

    resp = client.post(BASE, headers=auth_headers(), files={"file": ("products.csv", CSV, "text/csv")})

    assert resp.status_code == 200
    assert resp.json()["imported"] == 2
    items = [c[0][0] for c in create.calls]
    assert items[0]["tags"] == ["coffee", "gift"]
    assert items[1]["sku"].startswith("BAG-")
    assert items[1]["base_image_url"]


def test_csv_upload_with_bad_headers(client, auth_headers):
    resp = client.post(BASE, headers=auth_headers(),
                       files={"file": ("products.csv", "title,category\nMug,drinkware\n", "text/csv")})
    assert resp.status_code == 400
    assert resp.json()["detail"]["success"] is False


def test_empty_import(client, auth_headers):
    resp = client.post(BASE, json={"products": []}, headers=auth_headers())
    assert resp.status_code == 400


def test_rollback(client, fake_db, auth_headers, audit_entries):
    fake_db("get_items_by_batch", [{"id": "a"}, {"id": "b"}])
    delete = fake_db("delete_items_by_batch", ["a", "b"])

    resp = client.post(f"{BASE}/rollback", json={"rollbackId": "bulk_import_1_u"}, headers=auth_headers())

    assert resp.json() == {"success": True, "deleted": 2}
    assert delete.calls[0][0] == ("bulk_import_1_u",)
    assert audit_entries.calls[0][0][0]["action"] == "BULK_ROLLBACK"


def test_rollback_unknown_batch(client, fake_db, auth_headers):
    fake_db("get_items_by_batch", [])
    resp = client.post(f"{BASE}/rollback", json={"rollbackId": "nope"}, headers=auth_headers())
    assert resp.status_code == 404
    assert client.post(f"{BASE}/rollback", json={}, headers=auth_headers()).status_code == 400


def test_row_to_item_defaults():
    item = row_to_item({"name": " Mug ", "description": "d", "category": "Drinkware", "price": "4.50"}, "b1", 1)
    assert item["name"] == "Mug"
    assert item["category"] == "drinkware"
    assert item["price"] == 4.5
    assert item["status"] == "active"
    assert item["sku"].startswith("DRI-") and item["sku"].endswith("-1")
