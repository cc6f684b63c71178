import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from config import REMOVE_BG_BASE_URL, REMOVE_BG_RATE_LIMIT
from rate_limiter import InMemoryRateLimiter, RateLimitError, UsageTracker

logger = logging.getLogger(__name__)

# Shared across client instances so limits hold per process
remove_bg_rate_limiter = InMemoryRateLimiter(window_seconds=60, max_requests=REMOVE_BG_RATE_LIMIT)
remove_bg_usage = UsageTracker(max_entries=10000)


class RemoveBgError(Exception):
    """Error reported by remove.bg, or a network failure (status 0)."""

    def __init__(self, title: str, detail: str, code: str = "UNKNOWN_ERROR", status: int = 0):
        super().__init__(detail)
        self.title = title
        self.detail = detail
        self.code = code
        self.status = status

    def to_dict(self):
        return {"title": self.title, "detail": self.detail, "code": self.code, "status": self.status}


@dataclass
class RemoveBgResult:
    data: bytes
    content_type: str = "image/png"
    detected_type: Optional[str] = None
    width: int = 0
    height: int = 0
    credits_charged: float = 0


def _int_header(headers, name: str) -> int:
    try:
        return int(float(headers.get(name) or 0))
    except ValueError:
        return 0


class RemoveBgClient:
    """Wrapper class for the remove.bg background removal API."""

    TIMEOUT = 60.0

    def __init__(
        self,
        api_key: str,
        rate_limiter: InMemoryRateLimiter = remove_bg_rate_limiter,
        usage: UsageTracker = remove_bg_usage,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.rate_limiter = rate_limiter
        self.usage = usage
        self.rate_limit_info: Optional[dict] = None
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def headers(self) -> dict:
        return {"X-Api-Key": self.api_key}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.TIMEOUT, transport=self._transport)

    def _update_rate_limit_info(self, headers) -> None:
        remaining = headers.get("X-RateLimit-Remaining")
        reset = headers.get("X-RateLimit-Reset")
        total = headers.get("X-RateLimit-Limit")
        if remaining and reset and total:
            self.rate_limit_info = {
                "remaining": int(remaining),
                "reset": int(reset),
                "total": int(total),
            }

    @staticmethod
    def _error_from_response(response: httpx.Response) -> RemoveBgError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("errors"):
            body = body["errors"][0]
        if not isinstance(body, dict):
            body = {}
        return RemoveBgError(
            title=body.get("title") or "Remove.bg API Error",
            detail=body.get("detail") or f"HTTP {response.status_code}: {response.reason_phrase}",
            code=body.get("code") or "UNKNOWN_ERROR",
            status=response.status_code,
        )

    async def remove_background(
        self,
        image: Optional[bytes] = None,
        image_url: Optional[str] = None,
        filename: str = "image.png",
        options: Optional[dict] = None,
        user_id: Optional[str] = None,
    ) -> RemoveBgResult:
        """
        Remove the background from an image.

        Args:
            image: Raw image bytes (sent as image_file)
            image_url: Public URL of the image, used when no bytes are given
            filename: Filename reported for uploaded bytes
            options: Extra remove.bg form fields (size, type, format, crop, bg_color...)
            user_id: Rate limit key; requests without one share the "global" window

        Returns:
            RemoveBgResult with the processed image and vendor metadata
        """
        if not self.api_key:
            raise RemoveBgError("Configuration Error", "Remove.bg API key is not configured", "NOT_CONFIGURED", 500)
        if image is None and not image_url:
            raise RemoveBgError("Invalid Request", "An image file or image URL is required", "INVALID_REQUEST", 400)

        start = time.time()
        try:
            self.rate_limiter.enforce(user_id or "global")
        except RateLimitError:
            self.usage.record_request(
                success=False, rate_limited=True,
                response_time=(time.time() - start) * 1000, error="Rate limit exceeded",
            )
            raise

        data = {k: str(v).lower() if isinstance(v, bool) else str(v)
                for k, v in (options or {}).items() if v is not None}
        files = None
        if image is not None:
            files = {"image_file": (filename, image)}
        else:
            data["image_url"] = image_url

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{REMOVE_BG_BASE_URL}/removebg",
                    headers=self.headers,
                    data=data,
                    files=files,
                )
        except httpx.HTTPError as e:
            self.usage.record_request(
                success=False, response_time=(time.time() - start) * 1000, error=str(e),
            )
            logger.warning("remove.bg network error: %s", e)
            raise RemoveBgError("Network Error", str(e) or "Unknown network error", "NETWORK_ERROR", 0)

        elapsed = (time.time() - start) * 1000
        self._update_rate_limit_info(response.headers)

        if response.status_code >= 400:
            error = self._error_from_response(response)
            self.usage.record_request(success=False, response_time=elapsed, error=error.detail)
            logger.warning("remove.bg error %s: %s", error.status, error.detail)
            raise error

        credits = float(response.headers.get("X-Credits-Charged") or 0)
        self.usage.record_request(success=True, response_time=elapsed, credits_used=credits)
        return RemoveBgResult(
            data=response.content,
            content_type=response.headers.get("content-type", "image/png"),
            detected_type=response.headers.get("X-Type"),
            width=_int_header(response.headers, "X-Width"),
            height=_int_header(response.headers, "X-Height"),
            credits_charged=credits,
        )

    async def get_account_info(self) -> dict:
        """Get account credits and free API call allowance."""
        if not self.api_key:
            raise RemoveBgError("Configuration Error", "Remove.bg API key is not configured", "NOT_CONFIGURED", 500)
        try:
            async with self._client() as client:
                response = await client.get(f"{REMOVE_BG_BASE_URL}/account", headers=self.headers)
        except httpx.HTTPError as e:
            raise RemoveBgError("Network Error", str(e) or "Unknown network error", "NETWORK_ERROR", 0)

        self._update_rate_limit_info(response.headers)
        if response.status_code >= 400:
            raise self._error_from_response(response)
        body = response.json()
        # The API wraps account info in data.attributes
        if isinstance(body, dict) and "data" in body:
            return body["data"].get("attributes", body["data"])
        return body

    def get_usage_stats(self, since: Optional[float] = None) -> dict:
        return self.usage.get_stats(since)
