import base64

import pytest

import deps
from conftest import PRODUCT_ID, AsyncRecorder, png_bytes, product_row
from mockup_pipeline import MockupError
from routes.mockups import GenerateMockupRequest, to_mockup_request


def logo_data_url():
    return "data:image/png;base64," + base64.b64encode(png_bytes((60, 30))).decode()


def body(**overrides):
    payload = {
        "logo": {"data": logo_data_url()},
        "product": {"id": PRODUCT_ID},
        "placementType": "horizontal",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def fake_generate(monkeypatch):
    def patch(result):
        recorder = AsyncRecorder(result)
        monkeypatch.setattr(deps.mockup_pipeline, "generate", recorder)
        return recorder

    return patch


def test_to_mockup_request_maps_fields():
    req = to_mockup_request(GenerateMockupRequest(**body(
        adjustmentPrompt="make it glossy", sessionId="client-7", qualityLevel="premium",
    )))
    assert req.product_id == PRODUCT_ID
    assert req.logo_data.startswith(b"\x89PNG")
    assert req.additional_requirements == ["make it glossy"]
    assert req.client_id == "client-7"
    assert req.quality_level == "premium"


def test_generate_returns_rate_limit_headers(client, fake_generate):
    fake_generate({"id": "m1", "mockupUrl": "/uploads/generated-mockups/m1.png"})
    resp = client.post("/api/generate-mockup", json=body())
    assert resp.status_code == 200
    assert resp.json()["id"] == "m1"
    assert resp.headers["X-RateLimit-Limit"] == "10"
    assert resp.headers["X-RateLimit-Remaining"] == "9"


def test_rate_limit_per_client(client, fake_generate):
    fake_generate({"id": "m1"})
    for _ in range(10):
        assert client.post("/api/generate-mockup", json=body()).status_code == 200

    resp = client.post("/api/generate-mockup", json=body())
    assert resp.status_code == 429
    assert "Retry-After" in resp.headers

    other = client.post("/api/generate-mockup", json=body(), headers={"X-Forwarded-For": "203.0.113.9"})
    assert other.status_code == 200


def test_pipeline_errors_keep_their_status(client, fake_generate):
    fake_generate(MockupError("Product not found", 404))
    resp = client.post("/api/generate-mockup", json=body())
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product not found"


def test_unexpected_errors_are_500(client, fake_generate):
    fake_generate(RuntimeError("disk full"))
    resp = client.post("/api/generate-mockup", json=body())
    assert resp.status_code == 500
    assert resp.json()["detail"] == {"error": "Failed to generate mockup", "details": "disk full"}


def test_missing_fields_are_rejected(client):
    resp = client.post("/api/generate-mockup", json={"product": {"id": PRODUCT_ID}})
    assert resp.status_code == 400
    assert resp.json()["detail"].startswith("Missing required fields")


def test_end_to_end_composite(client, fake_db, monkeypatch):
    monkeypatch.setattr(deps.mockup_pipeline, "gemini", None)
    product_png = "data:image/png;base64," + base64.b64encode(png_bytes((300, 300), (255, 255, 255, 255))).decode()
    fake_db("get_public_gift_item", product_row(base_image_url=product_png))
    fake_db("find_constraint", None)
    fake_db("create_mockup_session", {"id": "e2e-mockup"})
    complete = fake_db("complete_mockup_session")

    resp = client.post("/api/generate-mockup", json=body(adjustments={"scale": 0.5, "rotation": 15}))

    assert resp.status_code == 200
    result = resp.json()
    assert result["aiEnhanced"] is False
    assert result["constraints"]["adjustments"]["scale"] == 0.5
    assert complete.calls[0][0][0] == "e2e-mockup"

    image = client.get(result["compositeUrl"])
    assert image.status_code == 200
    assert image.content.startswith(b"\x89PNG")


def test_get_mockup(client, fake_db):
    fake_db("get_mockup_session", {"id": "m1", "status": "completed"})
    assert client.get("/api/mockups/m1").json() == {"mockup": {"id": "m1", "status": "completed"}}


def test_get_mockup_not_found(client, fake_db):
    fake_db("get_mockup_session", None)
    resp = client.get("/api/mockups/m1")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Mockup not found or expired"


@pytest.mark.parametrize("overrides,status,detail", [
    ({"qualityLevel": "bogus"}, 400, "Invalid quality level"),
    ({"adjustments": {"scale": "big"}}, 400, "Invalid adjustment scale"),
    ({"logo": {"url": "http://169.254.169.254/latest/meta-data/"}}, 403, "Logo URL domain not allowed"),
])
def test_bad_mockup_input_is_rejected_before_work(client, fake_db, overrides, status, detail):
    create = fake_db("create_mockup_session", {"id": "never"})
    resp = client.post("/api/generate-mockup", json=body(**overrides))
    assert resp.status_code == status
    assert resp.json()["detail"].startswith(detail)
    assert create.calls == []
