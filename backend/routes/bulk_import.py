import io
import logging
import time
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

import audit
import database as db
from audit import AuditAction
from config import PLACEHOLDER_IMAGE_URL
from csv_import import generate_csv_template, parse_csv, split_list
from deps import AuthUser, catalog_cache, require_permission, statistics_cache
from sku import fallback_sku

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/products/bulk-import", tags=["bulk-import"])


class RollbackRequest(BaseModel):
    rollbackId: str = ""


def _as_list(value) -> List[str]:
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return split_list(value)


def row_to_item(row: Dict, rollback_id: str, index: int) -> Dict:
    """Map one import row onto gift_items columns."""
    price = (str(row.get("price") or "")).strip()
    thumbnail = (row.get("thumbnail_url") or "").strip() or None
    primary = (row.get("primary_image_url") or "").strip() or None
    return {
        "name": row["name"].strip(),
        "description": row["description"].strip(),
        "sku": (row.get("sku") or "").strip() or fallback_sku(row["category"], index),
        "category": row["category"].strip().lower(),
        "price": float(price) if price else None,
        "status": (row.get("status") or "active").strip().lower(),
        "tags": _as_list(row.get("tags")),
        "thumbnail_url": thumbnail,
        "primary_image_url": primary,
        "additional_images": _as_list(row.get("additional_images")),
        "base_image_url": primary or thumbnail or PLACEHOLDER_IMAGE_URL,
        "horizontal_enabled": True,
        "import_batch_id": rollback_id,
    }


async def _read_rows(request: Request) -> List[Dict]:
    """Rows from a multipart CSV upload or a JSON {products: [...]} body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if upload is None or not hasattr(upload, "read"):
            raise HTTPException(status_code=400, detail="No CSV file provided")
        text = (await upload.read()).decode("utf-8-sig", errors="replace")
        result = parse_csv(text)
        if not result.success:
            raise HTTPException(status_code=400, detail=result.to_dict())
        return result.rows

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    products = body.get("products") if isinstance(body, dict) else None
    return products if isinstance(products, list) else []


@router.get("/template")
async def download_template(user: AuthUser = Depends(require_permission("can_bulk_import_products"))):
    return StreamingResponse(
        io.BytesIO(generate_csv_template().encode()),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="product-import-template.csv"'},
    )


@router.post("")
async def bulk_import(
    request: Request,
    user: AuthUser = Depends(require_permission("can_bulk_import_products")),
):
    rows = await _read_rows(request)
    if not rows:
        raise HTTPException(status_code=400, detail="No products provided")

    rollback_id = f"bulk_import_{int(time.time() * 1000)}_{user.user_id}"
    imported = 0
    errors: List[str] = []

    for i, row in enumerate(rows, start=1):
        try:
            if not isinstance(row, dict) or not row.get("name") or not row.get("description") or not row.get("category"):
                errors.append(f"Row {i}: name, description and category are required")
                continue
            sku = (row.get("sku") or "").strip()
            if sku and await db.sku_exists(sku):
                errors.append(f"Row {i}: SKU '{sku}' already exists")
                continue
            await db.create_gift_item(row_to_item(row, rollback_id, i), created_by=user.user_id)
            imported += 1
        except Exception as e:
            logger.warning("Bulk import row %d failed: %s", i, e)
            errors.append(f"Row {i}: {e}")

    if imported:
        catalog_cache.invalidate("catalog:")
        statistics_cache.invalidate()

    await audit.log_user_action(
        user, AuditAction.BULK_IMPORT, request,
        resource_type="product", resource_id=rollback_id,
        details={"imported": imported, "failed": len(errors), "errors": errors[:10]},
    )
    return {
        "success": not errors,
        "imported": imported,
        "failed": len(errors),
        "errors": errors,
        "rollbackId": rollback_id,
    }


@router.post("/rollback")
async def rollback_import(
    req: RollbackRequest,
    request: Request,
    user: AuthUser = Depends(require_permission("can_bulk_import_products")),
):
    if not req.rollbackId:
        raise HTTPException(status_code=400, detail="Rollback ID is required")

    items = await db.get_items_by_batch(req.rollbackId)
    if not items:
        raise HTTPException(status_code=404, detail="No products found for this import batch")

    deleted = await db.delete_items_by_batch(req.rollbackId)
    catalog_cache.invalidate("catalog:")
    statistics_cache.invalidate()

    await audit.log_user_action(
        user, AuditAction.BULK_ROLLBACK, request,
        resource_type="product", resource_id=req.rollbackId,
        details={"deleted": len(deleted), "items": deleted},
    )
    return {"success": True, "deleted": len(deleted)}
