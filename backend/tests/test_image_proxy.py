import asyncio
import io

import httpx
import pytest
from PIL import Image

from image_proxy import ImageProxy, ImageProxyError, is_allowed_host, resize_image
from conftest import png_bytes


def make_proxy(handler):
    return ImageProxy(["images.unsplash.com", "supabase.co"], transport=httpx.MockTransport(handler))


def image_handler(request):
    return httpx.Response(200, content=png_bytes((200, 100)), headers={"content-type": "image/png"})


@pytest.mark.parametrize("host,allowed", [
    ("images.unsplash.com", True),
    ("abc.supabase.co", True),
    ("evilsupabase.co", False),
    ("example.com", False),
])
def test_allowed_hosts(host, allowed):
    assert is_allowed_host(host, ["images.unsplash.com", "supabase.co"]) is allowed


@pytest.mark.parametrize("url,status", [
    (None, 400),
    ("not a url", 400),
    ("ftp://images.unsplash.com/a.png", 400),
    ("https://example.com/a.png", 403),
])
def test_url_validation(url, status):
    with pytest.raises(ImageProxyError) as exc:
        make_proxy(image_handler).validate_url(url)
    assert exc.value.status_code == status


def test_resize_keeps_aspect_with_one_side():
    out = Image.open(io.BytesIO(resize_image(png_bytes((200, 100)), 50, None, "png")))
    assert out.size == (50, 25)
    assert out.format == "PNG"


def test_fetch_resizes_and_caches():
    calls = []

    def handler(request):
        calls.append(request.headers["User-Agent"])
        return image_handler(request)

    proxy = make_proxy(handler)
    url = "https://images.unsplash.com/photo.png"
    first = asyncio.run(proxy.fetch(url, width=100, fmt="jpeg", quality=70))
    second = asyncio.run(proxy.fetch(url, width=100, fmt="jpeg", quality=70))

    assert first is second
    assert calls == ["MockupGen-ImageProxy/1.0"]
    assert first.resized and first.content_type == "image/jpeg"
    assert Image.open(io.BytesIO(first.data)).size == (100, 50)


def test_fetch_passes_through_without_resize():
    result = asyncio.run(make_proxy(image_handler).fetch("https://images.unsplash.com/a.png"))
    assert not result.resized
    assert result.content_type == "image/png"


def test_upstream_errors():
    not_found = make_proxy(lambda r: httpx.Response(500))
    with pytest.raises(ImageProxyError) as exc:
        asyncio.run(not_found.fetch("https://images.unsplash.com/a.png"))
    assert exc.value.status_code == 404

    html = make_proxy(lambda r: httpx.Response(200, text="<html>", headers={"content-type": "text/html"}))
    with pytest.raises(ImageProxyError) as exc:
        asyncio.run(html.fetch("https://images.unsplash.com/a.png"))
    assert exc.value.status_code == 400


def test_head_reports_upstream_headers():
    def handler(request):
        assert request.method == "HEAD"
        return httpx.Response(200, headers={"content-type": "image/webp", "content-length": "1234"})

    headers = asyncio.run(make_proxy(handler).head("https://images.unsplash.com/a.webp"))
    assert headers["Content-Type"] == "image/webp"
    assert headers["Content-Length"] == "1234"
