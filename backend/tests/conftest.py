import io
import os
import tempfile

# Keep uploads out of the working tree and vendors unconfigured for the suite
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="gift-mockup-uploads-"))
os.environ.setdefault("GEMINI_API_KEY", "")
os.environ.setdefault("GOOGLE_AI_STUDIO_API_KEY", "")
os.environ.setdefault("REMOVE_BG_API_KEY", "")

import pytest
from fastapi.testclient import TestClient
from PIL import Image

import auth
import database
import deps
from remove_bg import remove_bg_rate_limiter, remove_bg_usage

PRODUCT_ID = "3f1c2b8e-9a4d-4e6f-8b21-0c5d7e9f1a23"
USER_ID = "b7e2a4c1-5d3f-4a8b-9c6e-1f2d3e4a5b6c"


class AsyncRecorder:
    """Async stand-in for a database function; records calls and returns a canned result."""

    def __init__(self, result=None):
        self.result = result
        self.calls = []

    async def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result(*args, **kwargs) if callable(self.result) else self.result


@pytest.fixture
def fake_db(monkeypatch):
    """fake_db("get_gift_item", {...}) replaces database.get_gift_item for the test."""

    def patch(name, result=None):
        recorder = AsyncRecorder(result)
        monkeypatch.setattr(database, name, recorder)
        return recorder

    return patch


@pytest.fixture(autouse=True)
def audit_entries(monkeypatch):
    recorder = AsyncRecorder()
    monkeypatch.setattr(database, "insert_audit_entry", recorder)
    return recorder


@pytest.fixture(autouse=True)
def reset_state():
    deps.catalog_cache.invalidate()
    deps.statistics_cache.invalidate()
    deps.mockup_rate_limiter.reset_all()
    remove_bg_rate_limiter.reset_all()
    remove_bg_usage.clear()
    yield


@pytest.fixture
def client():
    from main import app
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def make(role="product_manager", user_id=USER_ID, email="pm@example.com", session_id="sess-1"):
        token = auth.generate_access_token(user_id, email, role, session_id)
        return {"Authorization": f"Bearer {token}"}

    return make


def png_bytes(size=(40, 20), color=(255, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def product_row(**overrides):
    row = {
        "id": PRODUCT_ID,
        "name": "Ceramic Mug",
        "description": "A sturdy mug",
        "sku": "DRK-MUG-001",
        "category": "drinkware",
        "price": 12.5,
        "status": "active",
        "tags": ["mug"],
        "thumbnail_url": None,
        "primary_image_url": "https://cdn.example.com/mug.png",
        "base_image_url": "https://cdn.example.com/mug.png",
        "additional_images": [],
        "back_image_url": None,
        "has_back_printing": False,
        "horizontal_enabled": True,
        "vertical_enabled": False,
        "all_over_enabled": False,
    }
    row.update(overrides)
    return row
