"""
Mockup generation pipeline.

validate -> load product + constraint -> (remove logo background) ->
composite logo into the placement area -> engineer prompt -> Gemini render
-> store PNGs and record the mockup session.

Gemini is optional: without a key, or when it fails, the plain composite
is returned with aiEnhanced=False.
"""

import base64
import binascii
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

import httpx

import database as db
from compositor import (
    LogoAdjustments,
    area_from_constraint,
    composite_logo,
    decode_image,
    encode_png,
    fallback_area,
)
from config import (
    IMAGE_PROXY_DOMAINS,
    MOCKUP_PLACEMENT_TYPES,
    PLACEMENT_SIDES,
    PLACEMENT_TYPES,
    UPLOAD_MAX_BYTES,
)
from gemini import GeminiError, GeminiImageClient
from image_proxy import is_allowed_host
from prompts import (
    DEFAULT_QUALITY,
    QUALITY_MODIFIERS,
    PromptRequest,
    aspect_ratio_for,
    generate_prompt,
    normalize_placement,
    product_type_for_category,
)
from remove_bg import RemoveBgClient, RemoveBgError
from storage import LocalStorage, StorageError

logger = logging.getLogger(__name__)


class MockupError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class MockupRequest:
    product_id: str
    placement_type: str
    logo_url: Optional[str] = None
    logo_data: Optional[bytes] = None
    side: str = "front"
    adjustments: Optional[Dict] = None
    additional_requirements: List[str] = field(default_factory=list)
    remove_background: bool = False
    quality_level: str = DEFAULT_QUALITY
    style_preferences: Dict[str, str] = field(default_factory=dict)
    custom_text: Optional[str] = None
    brand_colors: List[str] = field(default_factory=list)
    client_id: Optional[str] = None


def decode_data_url(value: str) -> bytes:
    """Bytes from a data: URL or bare base64 string."""
    payload = value.split(",", 1)[1] if value.startswith("data:") else value
    if not payload:
        raise MockupError("Empty base64 logo data")
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        raise MockupError("Logo data is not valid base64")


def validate_request(req: MockupRequest) -> MockupRequest:
    if not (req.logo_url or req.logo_data) or not req.product_id or not req.placement_type:
        raise MockupError("Missing required fields: logo, product, placementType")
    req.placement_type = normalize_placement(req.placement_type)
    if req.placement_type not in MOCKUP_PLACEMENT_TYPES:
        raise MockupError(
            f"Invalid placement type: {req.placement_type}. "
            f"Valid types are: {', '.join(MOCKUP_PLACEMENT_TYPES)}"
        )
    if req.side not in PLACEMENT_SIDES:
        raise MockupError(f"Invalid side: {req.side}")
    if req.quality_level not in QUALITY_MODIFIERS:
        raise MockupError(
            f"Invalid quality level: {req.quality_level}. "
            f"Valid levels are: {', '.join(QUALITY_MODIFIERS)}"
        )
    try:
        LogoAdjustments.from_dict(req.adjustments)
    except ValueError as e:
        raise MockupError(str(e))
    return req


class MockupPipeline:
    FETCH_TIMEOUT = 30.0

    def __init__(
        self,
        gemini: Optional[GeminiImageClient],
        storage: LocalStorage,
        remove_bg: Optional[RemoveBgClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
        logo_domains: Iterable[str] = IMAGE_PROXY_DOMAINS,
        max_bytes: int = UPLOAD_MAX_BYTES,
    ):
        self.gemini = gemini
        self.storage = storage
        self.remove_bg = remove_bg
        self.logo_domains = list(logo_domains)
        self.max_bytes = max_bytes
        self._transport = transport
        self._rng = rng or random.Random()

    def check_logo_url(self, url: Optional[str]):
        """Client logo URLs must be data URLs, local uploads or allow-listed hosts."""
        if not url or url.startswith("data:") or url.startswith("/uploads/"):
            return
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise MockupError("Invalid logo URL")
        if not is_allowed_host(parsed.hostname, self.logo_domains):
            raise MockupError("Logo URL domain not allowed", 403)

    async def fetch_bytes(self, url: str, follow_redirects: bool = True) -> bytes:
        """Load an image from a data URL, local upload path or http(s) URL."""
        if url.startswith("data:"):
            return decode_data_url(url)
        if url.startswith("/uploads/"):
            _, _, bucket, filename = url.split("/", 3)
            try:
                return self.storage.path_for(bucket, filename).read_bytes()
            except (StorageError, OSError) as e:
                raise MockupError(f"Image not found: {url} ({e})", 404)
        try:
            async with httpx.AsyncClient(follow_redirects=follow_redirects, transport=self._transport) as client:
                async with client.stream("GET", url, timeout=self.FETCH_TIMEOUT) as resp:
                    resp.raise_for_status()
                    data = bytearray()
                    async for chunk in resp.aiter_bytes():
                        data.extend(chunk)
                        if len(data) > self.max_bytes:
                            raise MockupError(f"Image too large: {url}", 413)
        except httpx.HTTPError as e:
            raise MockupError(f"Failed to fetch image {url}: {e}", 502)
        return bytes(data)

    async def _process_logo(self, logo_bytes: bytes, req: MockupRequest, mockup_id: str):
        """Optionally strip the logo background. Returns (bytes, processed_url)."""
        if not req.remove_background or not self.remove_bg or not self.remove_bg.is_configured:
            return logo_bytes, None
        try:
            result = await self.remove_bg.remove_background(
                image=logo_bytes, options={"size": "auto", "format": "png"}, user_id=req.client_id,
            )
        except RemoveBgError as e:
            logger.warning("Background removal failed, using original logo: %s", e.detail)
            return logo_bytes, None
        url = self.storage.save("user-logos", f"{mockup_id}-logo.png", result.data)
        return result.data, url

    def _placement_area(self, constraint: Optional[dict], placement_type: str, size):
        canvas_w, canvas_h = size
        area = area_from_constraint(constraint, canvas_w, canvas_h) if constraint else None
        return area or fallback_area(placement_type, canvas_w, canvas_h)

    async def generate(self, req: MockupRequest) -> dict:
        start = time.time()
        req = validate_request(req)
        self.check_logo_url(req.logo_url)

        product = await db.get_public_gift_item(req.product_id)
        if not product:
            raise MockupError("Product not found", 404)

        constraint = None
        if req.placement_type in PLACEMENT_TYPES:
            constraint = await db.find_constraint(req.product_id, req.placement_type, req.side)

        session = await db.create_mockup_session(
            item_id=product["id"],
            constraint_id=constraint["id"] if constraint else None,
            original_logo_url=req.logo_url if req.logo_url and not req.logo_url.startswith("data:") else None,
            generation_params={
                "placementType": req.placement_type,
                "side": req.side,
                "qualityLevel": req.quality_level,
                "adjustments": req.adjustments,
                "stylePreferences": req.style_preferences,
            },
            session_id=req.client_id,
        )
        mockup_id = session["id"]

        try:
            result = await self._run(req, product, constraint, mockup_id)
        except MockupError as e:
            await db.fail_mockup_session(mockup_id, e.message)
            raise
        except Exception as e:
            logger.exception("Mockup %s failed", mockup_id)
            await db.fail_mockup_session(mockup_id, str(e) or "Unknown error")
            raise

        result["processingTime"] = round((time.time() - start) * 1000)
        return result

    async def _run(self, req: MockupRequest, product: dict, constraint: Optional[dict], mockup_id: str) -> dict:
        logo_bytes = req.logo_data
        if logo_bytes is None:
            logo_bytes = await self.fetch_bytes(req.logo_url, follow_redirects=False)
        logo_bytes, processed_logo_url = await self._process_logo(logo_bytes, req, mockup_id)

        image_url = product.get("back_image_url") if req.side == "back" else None
        image_url = image_url or product.get("base_image_url") or product.get("primary_image_url")
        if not image_url:
            raise MockupError("Product has no image to place the logo on")
        try:
            product_img = decode_image(await self.fetch_bytes(image_url))
            logo_img = decode_image(logo_bytes)
        except ValueError as e:
            raise MockupError(str(e))

        area = self._placement_area(constraint, req.placement_type, product_img.size)
        adjustments = LogoAdjustments.from_dict(req.adjustments)
        composite = composite_logo(product_img, logo_img, req.placement_type, area, adjustments)
        composite_png = encode_png(composite.image)
        composite_url = self.storage.save("generated-mockups", f"{mockup_id}-composite.png", composite_png)

        prompt = generate_prompt(PromptRequest(
            product_type=product_type_for_category(product.get("category")),
            placement_type=req.placement_type,
            quality_level=req.quality_level,
            style_preferences=req.style_preferences,
            custom_text=req.custom_text,
            brand_colors=req.brand_colors,
            additional_requirements=req.additional_requirements,
        ))

        mockup_url = composite_url
        ai_enhanced = False
        if self.gemini and self.gemini.is_configured:
            try:
                generated = await self.gemini.generate_image(
                    prompt.final_prompt,
                    images=[(composite_png, "image/png")],
                    aspect_ratio=aspect_ratio_for(req.quality_level),
                    seed=self._rng.randint(1, 999999),
                    include_text=bool(req.custom_text),
                )
                mockup_url = self.storage.save("generated-mockups", f"{mockup_id}.png", generated.images[0].data)
                ai_enhanced = True
            except GeminiError as e:
                logger.warning("Gemini render failed for mockup %s, returning composite: %s", mockup_id, e)

        await db.complete_mockup_session(mockup_id, mockup_url, processed_logo_url)

        return {
            "id": mockup_id,
            "status": "completed",
            "mockupUrl": mockup_url,
            "compositeUrl": composite_url,
            "prompt": prompt.to_dict(),
            "constraints": {
                "position": {"x": composite.position[0], "y": composite.position[1]},
                "scale": adjustments.scale,
                "size": {"width": composite.size[0], "height": composite.size[1]},
                "area": area.to_dict(),
                "adjustments": adjustments.to_dict(),
                "violations": composite.violations,
                "tiles": composite.tiles,
            },
            "aiEnhanced": ai_enhanced,
        }
