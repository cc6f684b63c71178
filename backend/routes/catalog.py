from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response

import database as db
from config import CATALOG_CACHE_CONTROL
from deps import catalog_cache

router = APIRouter(prefix="/api/products", tags=["catalog"])


@router.get("")
async def list_catalog(
    response: Response,
    category: Optional[str] = None,
    search: Optional[str] = None,
    tags: Optional[str] = None,
    sort: str = "name",
    limit: int = 20,
    offset: int = 0,
    no_cache: bool = Query(False, alias="no-cache"),
):
    """Active gift items for the storefront. ?tags is comma-separated."""
    limit = min(max(limit, 1), 100)
    offset = max(offset, 0)
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None

    key = f"catalog:{category}:{search}:{tags}:{sort}:{limit}:{offset}"
    cached = None if no_cache else catalog_cache.get(key)
    if cached is None:
        page = await db.list_public_gift_items(
            category=category, search=search, tags=tag_list, sort=sort, limit=limit, offset=offset,
        )
        facets = await db.get_catalog_facets()
        cached = {
            "products": page["products"],
            "total": page["total"],
            "limit": limit,
            "offset": offset,
            "hasMore": offset + len(page["products"]) < page["total"],
            "categories": facets["categories"],
            "tags": facets["tags"],
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }
        catalog_cache.set(key, cached)
        cache_used = False
    else:
        cache_used = True

    response.headers["Cache-Control"] = CATALOG_CACHE_CONTROL
    body = {k: v for k, v in cached.items() if k != "lastUpdated"}
    body["metadata"] = {"lastUpdated": cached["lastUpdated"], "cacheUsed": cache_used}
    return body


@router.get("/{item_id}")
async def get_catalog_item(item_id: str, response: Response):
    if len(item_id) < 32:
        raise HTTPException(status_code=400, detail="Invalid product ID")
    product = await db.get_public_gift_item(item_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    constraints = await db.list_item_constraints(item_id)
    response.headers["Cache-Control"] = CATALOG_CACHE_CONTROL
    return {"product": product, "constraints": constraints}
