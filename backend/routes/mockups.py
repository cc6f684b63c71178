import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

import audit
import database as db
from deps import mockup_pipeline, mockup_rate_limiter
from mockup_pipeline import MockupError, MockupRequest, decode_data_url
from prompts import DEFAULT_QUALITY

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mockups"])


class LogoInput(BaseModel):
    url: Optional[str] = None
    data: Optional[str] = None  # base64 or data: URL


class ProductRef(BaseModel):
    id: Optional[str] = None


class GenerateMockupRequest(BaseModel):
    logo: Optional[LogoInput] = None
    product: Optional[ProductRef] = None
    placementType: Optional[str] = None
    side: str = "front"
    adjustments: Optional[Dict[str, Any]] = None
    adjustmentPrompt: Optional[str] = None
    removeBackground: bool = False
    qualityLevel: str = DEFAULT_QUALITY
    stylePreferences: Dict[str, str] = Field(default_factory=dict)
    customText: Optional[str] = None
    brandColors: List[str] = Field(default_factory=list)
    sessionId: Optional[str] = None


def to_mockup_request(req: GenerateMockupRequest) -> MockupRequest:
    logo = req.logo or LogoInput()
    logo_data = decode_data_url(logo.data) if logo.data else None
    return MockupRequest(
        product_id=(req.product.id if req.product else None) or "",
        placement_type=req.placementType or "",
        logo_url=logo.url,
        logo_data=logo_data,
        side=req.side,
        adjustments=req.adjustments,
        additional_requirements=[req.adjustmentPrompt] if req.adjustmentPrompt else [],
        remove_background=req.removeBackground,
        quality_level=req.qualityLevel,
        style_preferences=req.stylePreferences,
        custom_text=req.customText,
        brand_colors=req.brandColors,
        client_id=req.sessionId,
    )


@router.post("/api/generate-mockup")
async def generate_mockup(req: GenerateMockupRequest, request: Request, response: Response):
    client_ip = audit.client_info(request)["ip_address"]
    limit = mockup_rate_limiter.check(f"mockup:{client_ip}")
    if not limit.allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many mockup requests. Please try again later.",
            headers=limit.headers(),
        )

    try:
        result = await mockup_pipeline.generate(to_mockup_request(req))
    except MockupError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception("Mockup generation failed")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to generate mockup", "details": str(e)}
        )
    response.headers.update(limit.headers())
    return result


@router.get("/api/mockups/{mockup_id}")
async def get_mockup(mockup_id: str):
    session = await db.get_mockup_session(mockup_id)
    if not session:
        raise HTTPException(status_code=404, detail="Mockup not found or expired")
    return {"mockup": session}
