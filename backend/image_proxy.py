"""Allow-listed image proxy with optional resize and re-encode."""

import io
import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image

from config import (
    IMAGE_PROXY_CACHE_TTL,
    IMAGE_PROXY_DEFAULT_FORMAT,
    IMAGE_PROXY_DEFAULT_QUALITY,
    IMAGE_PROXY_FORMATS,
    IMAGE_PROXY_USER_AGENT,
)
from response_cache import ResponseCache

logger = logging.getLogger(__name__)


class ImageProxyError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass
class ProxiedImage:
    data: bytes
    content_type: str
    resized: bool = False
    quality: int = IMAGE_PROXY_DEFAULT_QUALITY


def is_allowed_host(host: str, domains: Iterable[str]) -> bool:
    host = (host or "").lower()
    return any(host == d or host.endswith(f".{d}") for d in domains if d)


def resize_image(data: bytes, width: Optional[int], height: Optional[int],
                 fmt: str = IMAGE_PROXY_DEFAULT_FORMAT,
                 quality: int = IMAGE_PROXY_DEFAULT_QUALITY) -> bytes:
    """Resize to the given box (aspect kept when one side is missing) and re-encode."""
    img = Image.open(io.BytesIO(data))
    src_w, src_h = img.size
    if width and not height:
        height = max(1, round(src_h * width / src_w))
    elif height and not width:
        width = max(1, round(src_w * height / src_h))
    if width and height:
        img = img.resize((width, height), Image.LANCZOS)

    pil_format = "JPEG" if fmt in ("jpeg", "jpg") else fmt.upper()
    if pil_format == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buf = io.BytesIO()
    if pil_format == "PNG":
        img.save(buf, format="PNG", optimize=True)
    else:
        img.save(buf, format=pil_format, quality=quality)
    return buf.getvalue()


class ImageProxy:
    TIMEOUT = 30.0

    def __init__(self, allowed_domains: Iterable[str], cache: Optional[ResponseCache] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.allowed_domains = [d.strip().lower() for d in allowed_domains if d and d.strip()]
        self.cache = cache or ResponseCache(ttl_seconds=IMAGE_PROXY_CACHE_TTL, max_entries=200)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.TIMEOUT,
            follow_redirects=True,
            headers={"User-Agent": IMAGE_PROXY_USER_AGENT},
            transport=self._transport,
        )

    def validate_url(self, raw_url: Optional[str]) -> str:
        if not raw_url:
            raise ImageProxyError(400, "Image URL required")
        url = unquote(raw_url)
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ImageProxyError(400, "Invalid image URL")
        if not is_allowed_host(parsed.hostname, self.allowed_domains):
            raise ImageProxyError(403, "Domain not allowed")
        return url

    async def fetch(
        self,
        raw_url: Optional[str],
        width: Optional[int] = None,
        height: Optional[int] = None,
        quality: int = IMAGE_PROXY_DEFAULT_QUALITY,
        fmt: str = IMAGE_PROXY_DEFAULT_FORMAT,
    ) -> ProxiedImage:
        """
        Fetch an allow-listed image, resizing when w or h is given.

        Raises:
            ImageProxyError: 400 bad url/format/not an image, 403 domain, 404 upstream failure
        """
        url = self.validate_url(raw_url)
        fmt = (fmt or IMAGE_PROXY_DEFAULT_FORMAT).lower()
        if fmt not in IMAGE_PROXY_FORMATS:
            raise ImageProxyError(400, f"Unsupported format: {fmt}")
        quality = min(100, max(1, quality))

        key = f"proxy:{url}:{width}:{height}:{quality}:{fmt}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            async with self._client() as client:
                resp = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Image proxy fetch failed for %s: %s", url, e)
            raise ImageProxyError(404, "Failed to fetch image")

        if resp.status_code >= 400:
            raise ImageProxyError(404, "Failed to fetch image")
        content_type = resp.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            raise ImageProxyError(400, "Not an image")

        if width or height:
            try:
                data = resize_image(resp.content, width, height, fmt, quality)
            except (OSError, ValueError) as e:
                logger.warning("Image proxy resize failed for %s: %s", url, e)
                raise ImageProxyError(400, "Could not process image")
            result = ProxiedImage(data, IMAGE_PROXY_FORMATS[fmt], resized=True, quality=quality)
        else:
            result = ProxiedImage(resp.content, content_type.split(";")[0], quality=quality)

        self.cache.set(key, result)
        return result

    async def head(self, raw_url: Optional[str]) -> dict:
        url = self.validate_url(raw_url)
        try:
            async with self._client() as client:
                resp = await client.head(url)
        except httpx.HTTPError:
            raise ImageProxyError(404, "Failed to fetch image")
        if resp.status_code >= 400:
            raise ImageProxyError(404, "Failed to fetch image")
        return {
            "Content-Type": resp.headers.get("content-type", "application/octet-stream"),
            "Content-Length": resp.headers.get("content-length", "0"),
            "Cache-Control": "public, max-age=3600",
        }
