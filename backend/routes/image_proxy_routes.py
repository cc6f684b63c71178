from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from config import IMAGE_CACHE_CONTROL, IMAGE_PROXY_DEFAULT_FORMAT, IMAGE_PROXY_DEFAULT_QUALITY
from deps import image_proxy
from image_proxy import ImageProxyError

router = APIRouter(prefix="/api/image-proxy", tags=["image-proxy"])


@router.get("")
async def proxy_image(
    url: Optional[str] = None,
    w: Optional[int] = None,
    h: Optional[int] = None,
    q: int = IMAGE_PROXY_DEFAULT_QUALITY,
    f: str = IMAGE_PROXY_DEFAULT_FORMAT,
):
    try:
        image = await image_proxy.fetch(url, w, h, q, f)
    except ImageProxyError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    headers = {
        "Cache-Control": IMAGE_CACHE_CONTROL,
        "X-Image-Proxy": "optimized",
    }
    if image.resized:
        headers["X-Image-Optimized"] = "resized"
        headers["X-Image-Quality"] = str(image.quality)
    return Response(content=image.data, media_type=image.content_type, headers=headers)


@router.head("")
async def proxy_image_head(url: Optional[str] = None):
    try:
        headers = await image_proxy.head(url)
    except ImageProxyError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(headers=headers)
