import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel

import audit
import database as db
from audit import AuditAction
from config import PLACEMENT_SIDES, PLACEMENT_TYPES
from constraint_detection import (
    ConstraintDimensions,
    calculate_optimal_placement,
    detect_green_areas,
    load_rgba,
    validate_constraint,
)
from deps import AuthUser, catalog_cache, mockup_pipeline, require_permission, statistics_cache
from mockup_pipeline import MockupError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/constraints", tags=["constraints"])

# Request key -> placement_constraints column
FIELD_MAP = {
    "constraintImageUrl": "constraint_image_url",
    "detectedAreaPixels": "detected_area_pixels",
    "detectedAreaPercentage": "detected_area_percentage",
    "detectedAreaX": "detected_area_x",
    "detectedAreaY": "detected_area_y",
    "detectedAreaWidth": "detected_area_width",
    "detectedAreaHeight": "detected_area_height",
    "minLogoWidth": "min_logo_width",
    "minLogoHeight": "min_logo_height",
    "maxLogoWidth": "max_logo_width",
    "maxLogoHeight": "max_logo_height",
    "defaultXPosition": "default_x_position",
    "defaultYPosition": "default_y_position",
    "guidelinesText": "guidelines_text",
    "patternSettings": "pattern_settings",
}


class ConstraintRequest(BaseModel):
    productId: Optional[str] = None
    placementType: Optional[str] = None
    side: str = "front"
    constraintImageUrl: Optional[str] = None
    detectedAreaPixels: Optional[int] = None
    detectedAreaPercentage: Optional[float] = None
    detectedAreaX: Optional[int] = None
    detectedAreaY: Optional[int] = None
    detectedAreaWidth: Optional[int] = None
    detectedAreaHeight: Optional[int] = None
    minLogoWidth: Optional[int] = None
    minLogoHeight: Optional[int] = None
    maxLogoWidth: Optional[int] = None
    maxLogoHeight: Optional[int] = None
    defaultXPosition: Optional[int] = None
    defaultYPosition: Optional[int] = None
    guidelinesText: Optional[str] = None
    patternSettings: Optional[Dict[str, Any]] = None
    isEnabled: Optional[bool] = None


def _columns(req: ConstraintRequest) -> Dict[str, Any]:
    """Columns for the fields explicitly present in the request."""
    given = req.model_dump(exclude_unset=True)
    return {column: given[key] for key, column in FIELD_MAP.items() if key in given}


def _invalidate_caches():
    catalog_cache.invalidate("catalog:")
    statistics_cache.invalidate()


@router.post("", status_code=201)
async def create_constraint(
    req: ConstraintRequest,
    request: Request,
    user: AuthUser = Depends(require_permission("can_manage_constraints")),
):
    if not req.productId or not req.placementType or not req.constraintImageUrl:
        raise HTTPException(
            status_code=400, detail="Product ID, placement type, and constraint image URL are required"
        )
    placement_type = req.placementType.replace("-", "_")
    if placement_type not in PLACEMENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid placement type: {req.placementType}")
    if req.side not in PLACEMENT_SIDES:
        raise HTTPException(status_code=400, detail=f"Invalid side: {req.side}")

    product = await db.get_gift_item(req.productId)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if await db.find_constraint(req.productId, placement_type, req.side):
        raise HTTPException(
            status_code=409,
            detail=f"A {placement_type} constraint already exists for the {req.side} of this product",
        )

    fields = _columns(req)
    fields["is_validated"] = (req.detectedAreaPixels or 0) > 0
    constraint = await db.create_constraint(req.productId, placement_type, req.side, fields)

    enabled = True if req.isEnabled is None else req.isEnabled
    await db.set_placement_enabled(req.productId, placement_type, enabled)
    _invalidate_caches()

    await audit.log_user_action(
        user, AuditAction.CONSTRAINT_CREATE, request,
        resource_type="constraint", resource_id=constraint["id"],
        resource_name=f"{product['name']} ({placement_type}, {req.side})",
        new_values={"placementType": placement_type, "side": req.side, "isEnabled": enabled},
    )
    return {"constraint": constraint}


@router.put("/{constraint_id}")
async def update_constraint(
    constraint_id: str,
    req: ConstraintRequest,
    request: Request,
    user: AuthUser = Depends(require_permission("can_manage_constraints")),
):
    existing = await db.get_constraint(constraint_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Constraint not found")

    fields = _columns(req)
    if req.detectedAreaPixels is not None:
        fields["is_validated"] = req.detectedAreaPixels > 0

    updated = await db.update_constraint(constraint_id, fields)
    if not updated:
        raise HTTPException(status_code=404, detail="Constraint not found")
    if req.isEnabled is not None:
        await db.set_placement_enabled(existing["item_id"], existing["placement_type"], req.isEnabled)
    _invalidate_caches()

    await audit.log_user_action(
        user, AuditAction.CONSTRAINT_UPDATE, request,
        resource_type="constraint", resource_id=constraint_id,
        old_values={k: existing.get(k) for k in fields},
        new_values=dict(fields, **({"isEnabled": req.isEnabled} if req.isEnabled is not None else {})),
    )
    return {"constraint": updated}


@router.delete("/{constraint_id}")
async def delete_constraint(
    constraint_id: str,
    request: Request,
    user: AuthUser = Depends(require_permission("can_manage_constraints")),
):
    existing = await db.get_constraint(constraint_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Constraint not found")

    await db.delete_constraint(constraint_id)
    await db.set_placement_enabled(existing["item_id"], existing["placement_type"], False)
    _invalidate_caches()

    await audit.log_user_action(
        user, AuditAction.CONSTRAINT_DELETE, request,
        resource_type="constraint", resource_id=constraint_id,
        old_values={"placementType": existing["placement_type"], "side": existing.get("side")},
    )
    return {"success": True}


@router.post("/detect")
async def detect_constraint_area(
    image: Optional[UploadFile] = File(None),
    imageUrl: Optional[str] = Form(None),
    placementType: str = Form("horizontal"),
    minWidth: int = Form(50),
    minHeight: int = Form(50),
    maxWidth: int = Form(400),
    maxHeight: int = Form(400),
    logoWidth: Optional[int] = Form(None),
    logoHeight: Optional[int] = Form(None),
    user: AuthUser = Depends(require_permission("can_manage_constraints")),
):
    """Find the green-marked placement area in a constraint image and score it."""
    if image is not None:
        data = await image.read()
    elif imageUrl:
        try:
            data = await mockup_pipeline.fetch_bytes(imageUrl)
        except MockupError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
    else:
        raise HTTPException(status_code=400, detail="An image file or imageUrl is required")

    try:
        rgba = load_rgba(data)
    except OSError:
        raise HTTPException(status_code=400, detail="Could not read image")

    placement_type = placementType.replace("-", "_")
    height, width = rgba.shape[:2]
    dims = ConstraintDimensions(minWidth, minHeight, maxWidth, maxHeight)
    area = detect_green_areas(rgba)
    validation = validate_constraint(area, dims, width, height, placement_type)

    result = {
        "imageWidth": width,
        "imageHeight": height,
        "detectedArea": area.to_dict(),
        "validation": validation.to_dict(),
    }
    if logoWidth and logoHeight:
        result["placement"] = calculate_optimal_placement(area, logoWidth, logoHeight, dims)
    return result
