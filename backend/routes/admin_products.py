import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

import audit
import database as db
from audit import AuditAction
from config import CATEGORIES, PLACEHOLDER_IMAGE_URL, PRODUCT_STATUSES
from deps import AuthUser, catalog_cache, require_permission, statistics_cache
from sku import duplicate_sku, fallback_sku, validate_sku

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/products", tags=["admin-products"])

# Fields compared for the PRODUCT_UPDATE audit diff
TRACKED_FIELDS = (
    "name", "description", "sku", "category", "price", "status", "tags",
    "thumbnail_url", "primary_image_url", "additional_images",
)


class ProductRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    status: Optional[str] = None
    tags: Optional[List[str]] = None
    thumbnail_url: Optional[str] = None
    primary_image_url: Optional[str] = None
    additional_images: Optional[List[str]] = None
    back_image_url: Optional[str] = None
    has_back_printing: Optional[bool] = None


class BulkDeleteRequest(BaseModel):
    productIds: List[str] = []


def _invalidate_caches():
    catalog_cache.invalidate("catalog:")
    statistics_cache.invalidate()


def _check_required(req: ProductRequest):
    if not req.name or not req.description or not req.category:
        raise HTTPException(status_code=400, detail="Name, description, and category are required")
    if req.category.lower() not in CATEGORIES:
        raise HTTPException(status_code=400, detail=f"Invalid category: {req.category}")
    if req.status and req.status not in PRODUCT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {req.status}")


def _check_sku_format(sku: str):
    valid, errors = validate_sku(sku)
    if not valid:
        raise HTTPException(status_code=400, detail="; ".join(errors))


def diff_fields(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """{field: {from, to}} for tracked fields whose value changed."""
    changes = {}
    for field in TRACKED_FIELDS:
        if field in new and new[field] != old.get(field):
            changes[field] = {"from": old.get(field), "to": new[field]}
    return changes


@router.get("")
async def list_products(
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    user: AuthUser = Depends(require_permission("can_view_products")),
):
    limit = min(max(limit, 1), 500)
    return await db.list_admin_gift_items(
        status=status, category=category, search=search, limit=limit, offset=max(offset, 0),
    )


@router.post("", status_code=201)
async def create_product(
    req: ProductRequest,
    request: Request,
    user: AuthUser = Depends(require_permission("can_create_products")),
):
    _check_required(req)
    if req.sku:
        _check_sku_format(req.sku)
        if await db.sku_exists(req.sku):
            raise HTTPException(status_code=400, detail="SKU already exists")

    data = {
        "name": req.name.strip(),
        "description": req.description.strip(),
        "category": req.category.lower(),
        "sku": req.sku or fallback_sku(req.category),
        "price": req.price,
        "status": req.status or "active",
        "tags": req.tags or [],
        "thumbnail_url": req.thumbnail_url,
        "primary_image_url": req.primary_image_url,
        "base_image_url": req.primary_image_url or req.thumbnail_url or PLACEHOLDER_IMAGE_URL,
        "additional_images": req.additional_images or [],
        "back_image_url": req.back_image_url,
        "has_back_printing": bool(req.has_back_printing),
        "horizontal_enabled": True,
    }
    product = await db.create_gift_item(data, created_by=user.user_id)
    _invalidate_caches()

    await audit.log_user_action(
        user, AuditAction.PRODUCT_CREATE, request,
        resource_type="product", resource_id=product["id"], resource_name=product["name"],
        new_values={k: data[k] for k in ("name", "sku", "category", "status", "price")},
    )
    return {"product": product}


@router.post("/bulk-delete")
async def bulk_delete_products(
    req: BulkDeleteRequest,
    request: Request,
    user: AuthUser = Depends(require_permission("can_delete_products")),
):
    ids = list(dict.fromkeys(req.productIds))
    if not ids:
        raise HTTPException(status_code=400, detail="No product IDs provided")

    products = await db.get_gift_items_by_ids(ids)
    if len(products) != len(ids):
        raise HTTPException(status_code=404, detail="One or more products not found")

    deleted = await db.soft_delete_gift_items(ids, user.user_id)
    _invalidate_caches()
    for product in products:
        await audit.log_user_action(
            user, AuditAction.PRODUCT_BULK_DELETE, request,
            resource_type="product", resource_id=product["id"], resource_name=product["name"],
            old_values={"status": product["status"]},
            details={"batchSize": len(products)},
        )
    return {
        "success": True,
        "message": f"Successfully deleted {deleted} products",
        "deletedCount": deleted,
    }


@router.get("/{item_id}")
async def get_product(item_id: str, user: AuthUser = Depends(require_permission("can_view_products"))):
    product = await db.get_gift_item(item_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"product": product}


@router.put("/{item_id}")
async def update_product(
    item_id: str,
    req: ProductRequest,
    request: Request,
    user: AuthUser = Depends(require_permission("can_edit_products")),
):
    existing = await db.get_gift_item(item_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Product not found")
    _check_required(req)

    if req.sku and req.sku != existing["sku"]:
        _check_sku_format(req.sku)
        if await db.sku_exists(req.sku, exclude_id=item_id):
            raise HTTPException(status_code=400, detail="SKU already exists")

    # Omitted optional fields keep their stored values
    fields = {
        "name": req.name.strip(),
        "description": req.description.strip(),
        "category": req.category.lower(),
        "sku": req.sku or existing["sku"],
        "status": req.status or existing["status"],
        "tags": req.tags if req.tags is not None else existing.get("tags") or [],
        "additional_images": (
            req.additional_images if req.additional_images is not None
            else existing.get("additional_images") or []
        ),
    }
    for optional in ("price", "thumbnail_url", "primary_image_url", "back_image_url", "has_back_printing"):
        value = getattr(req, optional)
        if value is not None:
            fields[optional] = value
    if req.primary_image_url or req.thumbnail_url:
        fields["base_image_url"] = req.primary_image_url or req.thumbnail_url

    changes = diff_fields(existing, fields)
    product = await db.update_gift_item(item_id, fields, updated_by=user.user_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    _invalidate_caches()

    if changes:
        await audit.log_user_action(
            user, AuditAction.PRODUCT_UPDATE, request,
            resource_type="product", resource_id=item_id, resource_name=product["name"],
            details={"changes": changes},
            old_values={k: v["from"] for k, v in changes.items()},
            new_values={k: v["to"] for k, v in changes.items()},
        )
    return {"product": product}


@router.delete("/{item_id}")
async def delete_product(
    item_id: str,
    request: Request,
    user: AuthUser = Depends(require_permission("can_delete_products")),
):
    existing = await db.get_gift_item(item_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Product not found")

    await db.soft_delete_gift_items([item_id], user.user_id)
    _invalidate_caches()
    await audit.log_user_action(
        user, AuditAction.PRODUCT_DELETE, request,
        resource_type="product", resource_id=item_id, resource_name=existing["name"],
        old_values={"status": existing["status"], "sku": existing["sku"]},
    )
    return {"success": True, "message": "Product deleted successfully"}


@router.post("/{item_id}/duplicate", status_code=201)
async def duplicate_product(
    item_id: str,
    request: Request,
    user: AuthUser = Depends(require_permission("can_create_products")),
):
    original = await db.get_gift_item(item_id)
    if not original:
        raise HTTPException(status_code=404, detail="Product not found")

    data = {
        "name": f"{original['name']} (Copy)",
        "description": original["description"],
        "category": original["category"],
        "sku": duplicate_sku(original["sku"]),
        "price": original.get("price"),
        "status": "inactive",
        "tags": original.get("tags") or [],
        "base_image_url": original.get("base_image_url"),
        "thumbnail_url": original.get("thumbnail_url"),
        "primary_image_url": original.get("primary_image_url"),
        "additional_images": original.get("additional_images") or [],
        "back_image_url": original.get("back_image_url"),
        "has_back_printing": original.get("has_back_printing", False),
        "horizontal_enabled": original.get("horizontal_enabled", True),
        "vertical_enabled": original.get("vertical_enabled", False),
        "all_over_enabled": original.get("all_over_enabled", False),
    }
    product = await db.create_gift_item(data, created_by=user.user_id)
    _invalidate_caches()

    await audit.log_user_action(
        user, AuditAction.PRODUCT_DUPLICATE, request,
        resource_type="product", resource_id=product["id"], resource_name=product["name"],
        details={"sourceProductId": item_id, "sourceSku": original["sku"]},
    )
    return {"product": product}


@router.get("/{item_id}/constraints")
async def list_product_constraints(
    item_id: str,
    user: AuthUser = Depends(require_permission("can_manage_constraints", "can_view_products")),
):
    product = await db.get_gift_item(item_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"constraints": await db.list_item_constraints(item_id)}
