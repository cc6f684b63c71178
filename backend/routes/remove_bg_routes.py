import time
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from config import REMOVE_BG_FORMATS, REMOVE_BG_SIZES
from deps import remove_bg
from rate_limiter import RateLimitError
from remove_bg import RemoveBgError

router = APIRouter(prefix="/api/remove-bg", tags=["remove-bg"])


def _error_response(e: RemoveBgError) -> HTTPException:
    return HTTPException(status_code=e.status or 502, detail=e.to_dict())


@router.post("")
async def remove_background(
    image_file: Optional[UploadFile] = File(None),
    image_url: Optional[str] = Form(None),
    size: str = Form("auto"),
    format: str = Form("png"),
    userId: Optional[str] = Form(None),
):
    """Strip the background from an uploaded image (or image URL) and return the PNG."""
    if not remove_bg.is_configured:
        raise HTTPException(status_code=500, detail="Remove.bg API key not configured on server")
    if image_file is None and not image_url:
        raise HTTPException(status_code=400, detail="An image file or image URL is required")
    if size not in REMOVE_BG_SIZES:
        raise HTTPException(status_code=400, detail=f"Invalid size: {size}")
    if format not in REMOVE_BG_FORMATS:
        raise HTTPException(status_code=400, detail=f"Invalid format: {format}")

    data = await image_file.read() if image_file is not None else None
    try:
        result = await remove_bg.remove_background(
            image=data,
            image_url=image_url,
            filename=(image_file.filename if image_file is not None else None) or "image.png",
            options={"size": size, "format": format},
            user_id=userId,
        )
    except RateLimitError as e:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Please try again later.",
            headers=e.result.headers(),
        )
    except RemoveBgError as e:
        raise _error_response(e)

    headers = {
        "X-Width": str(result.width),
        "X-Height": str(result.height),
        "X-Credits-Charged": str(result.credits_charged),
    }
    if result.detected_type:
        headers["X-Type"] = result.detected_type
    if remove_bg.rate_limit_info:
        headers["X-RateLimit-Remaining"] = str(remove_bg.rate_limit_info["remaining"])
        headers["X-RateLimit-Limit"] = str(remove_bg.rate_limit_info["total"])
    return Response(content=result.data, media_type=result.content_type, headers=headers)


@router.get("")
async def usage_stats(hours: Optional[int] = None):
    """Usage of the remove.bg integration, optionally for the last N hours."""
    since = time.time() - hours * 3600 if hours else None
    return {
        "configured": remove_bg.is_configured,
        "usage": remove_bg.get_usage_stats(since),
        "rateLimit": remove_bg.rate_limit_info,
    }


@router.get("/credits")
async def account_credits():
    try:
        return {"account": await remove_bg.get_account_info()}
    except RemoveBgError as e:
        raise _error_response(e)
