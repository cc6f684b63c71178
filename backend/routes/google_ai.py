import base64
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from deps import gemini
from gemini import GeminiError

router = APIRouter(prefix="/api/google-ai", tags=["google-ai"])

NOT_CONFIGURED = "Google AI API key not configured on server"


class TextRequest(BaseModel):
    prompt: Optional[str] = None
    model: Optional[str] = None


class InputImage(BaseModel):
    data: str  # base64 or data: URL
    mimeType: str = "image/png"


class ImageRequest(BaseModel):
    prompt: Optional[str] = None
    images: List[InputImage] = []
    aspectRatio: Optional[str] = None
    seed: Optional[int] = None
    includeText: Optional[bool] = None


def _decode(image: InputImage) -> bytes:
    payload = image.data.split(",", 1)[1] if image.data.startswith("data:") else image.data
    try:
        return base64.b64decode(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Image data is not valid base64")


def _require_configured():
    if not gemini.is_configured:
        raise HTTPException(status_code=500, detail=NOT_CONFIGURED)


@router.get("")
async def connection_status():
    return await gemini.check_connection()


@router.post("")
async def generate_text(req: TextRequest):
    if not req.prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")
    _require_configured()
    try:
        return await gemini.generate_text(req.prompt, req.model)
    except GeminiError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/image")
async def generate_image(req: ImageRequest):
    if not req.prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")
    _require_configured()
    images = [(_decode(img), img.mimeType) for img in req.images]
    try:
        result = await gemini.generate_image(
            req.prompt,
            images=images,
            aspect_ratio=req.aspectRatio,
            seed=req.seed,
            include_text=req.includeText,
        )
    except GeminiError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return result.to_dict()
