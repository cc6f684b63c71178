import io

import pytest
from PIL import Image

from conftest import PRODUCT_ID, product_row

BASE = "/api/admin/constraints"

NEW_CONSTRAINT = {
    "productId": PRODUCT_ID,
    "placementType": "all-over",
    "side": "front",
    "constraintImageUrl": "/uploads/gift-items/mug-constraint.png",
    "detectedAreaPixels": 1200,
    "detectedAreaX": 40,
    "detectedAreaY": 30,
}


def constraint_png():
    img = Image.new("RGBA", (200, 100), (255, 255, 255, 255))
    img.paste((0, 200, 0, 255), (60, 30, 140, 70))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.mark.parametrize("body,status", [
    ({"productId": PRODUCT_ID, "placementType": "horizontal"}, 400),
    (dict(NEW_CONSTRAINT, placementType="diagonal"), 400),
    (dict(NEW_CONSTRAINT, side="top"), 400),
])
def test_create_validation(client, auth_headers, body, status):
    assert client.post(BASE, json=body, headers=auth_headers()).status_code == status


def test_viewer_cannot_manage_constraints(client, auth_headers):
    assert client.post(BASE, json=NEW_CONSTRAINT, headers=auth_headers(role="viewer")).status_code == 403


def test_create_for_missing_product(client, fake_db, auth_headers):
    fake_db("get_gift_item", None)
    assert client.post(BASE, json=NEW_CONSTRAINT, headers=auth_headers()).status_code == 404


def test_duplicate_constraint_conflicts(client, fake_db, auth_headers):
    fake_db("get_gift_item", product_row())
    fake_db("find_constraint", {"id": "existing"})
    resp = client.post(BASE, json=NEW_CONSTRAINT, headers=auth_headers())
    assert resp.status_code == 409


def test_create_constraint(client, fake_db, auth_headers, audit_entries):
    fake_db("get_gift_item", product_row())
    fake_db("find_constraint", None)
    create = fake_db("create_constraint", {"id": "c1", "placement_type": "all_over"})
    enable = fake_db("set_placement_enabled")

    resp = client.post(BASE, json=NEW_CONSTRAINT, headers=auth_headers())

    assert resp.status_code == 201
    assert resp.json()["constraint"]["id"] == "c1"
    item_id, placement, side, fields = create.calls[0][0]
    assert (item_id, placement, side) == (PRODUCT_ID, "all_over", "front")
    assert fields == {
        "constraint_image_url": "/uploads/gift-items/mug-constraint.png",
        "detected_area_pixels": 1200,
        "detected_area_x": 40,
        "detected_area_y": 30,
        "is_validated": True,
    }
    assert enable.calls[0][0] == (PRODUCT_ID, "all_over", True)
    entry = audit_entries.calls[0][0][0]
    assert entry["action"] == "CONSTRAINT_CREATE"
    assert entry["resource_name"] == "Ceramic Mug (all_over, front)"


def test_update_only_sends_given_fields(client, fake_db, auth_headers):
    fake_db("get_constraint", {"id": "c1", "item_id": PRODUCT_ID, "placement_type": "vertical", "side": "front"})
    update = fake_db("update_constraint", {"id": "c1"})
    enable = fake_db("set_placement_enabled")

    resp = client.put(f"{BASE}/c1", json={"guidelinesText": "Keep clear of handle", "isEnabled": False},
                      headers=auth_headers())

    assert resp.status_code == 200
    assert update.calls[0][0] == ("c1", {"guidelines_text": "Keep clear of handle"})
    assert enable.calls[0][0] == (PRODUCT_ID, "vertical", False)


def test_delete_disables_placement(client, fake_db, auth_headers, audit_entries):
    fake_db("get_constraint", {"id": "c1", "item_id": PRODUCT_ID, "placement_type": "vertical", "side": "back"})
    delete = fake_db("delete_constraint", True)
    enable = fake_db("set_placement_enabled")

    resp = client.delete(f"{BASE}/c1", headers=auth_headers())

    assert resp.json() == {"success": True}
    assert delete.calls[0][0] == ("c1",)
    assert enable.calls[0][0] == (PRODUCT_ID, "vertical", False)
    assert audit_entries.calls[0][0][0]["action"] == "CONSTRAINT_DELETE"


def test_delete_missing(client, fake_db, auth_headers):
    fake_db("get_constraint", None)
    assert client.delete(f"{BASE}/nope", headers=auth_headers()).status_code == 404


def test_detect_from_upload(client, auth_headers):
    resp = client.post(
        f"{BASE}/detect",
        headers=auth_headers(),
        files={"image": ("constraint.png", constraint_png(), "image/png")},
        data={"minWidth": "20", "minHeight": "20", "logoWidth": "40", "logoHeight": "20"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert (body["imageWidth"], body["imageHeight"]) == (200, 100)
    assert body["detectedArea"]["pixels"] > 0
    bounds = body["detectedArea"]["bounds"]
    assert 55 <= bounds["x"] <= 65
    assert "isValid" in body["validation"]
    assert "placement" in body


def test_detect_requires_an_image(client, auth_headers):
    assert client.post(f"{BASE}/detect", headers=auth_headers(), data={}).status_code == 400


def test_detect_rejects_unreadable_image(client, auth_headers):
    resp = client.post(f"{BASE}/detect", headers=auth_headers(),
                       files={"image": ("x.png", b"not a png", "image/png")})
    assert resp.status_code == 400
