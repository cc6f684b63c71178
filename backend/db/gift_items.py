"""Gift item (product) queries for the admin back office and public catalog."""

import json
from typing import Optional, List, Dict, Any
from db.connection import get_pool, is_uuid, record_to_dict

JSON_FIELDS = ("tags", "additional_images")

# Columns writable through create/update
GIFT_ITEM_FIELDS = (
    "sku",
    "name",
    "category",
    "description",
    "tags",
    "price",
    "base_image_url",
    "thumbnail_url",
    "primary_image_url",
    "additional_images",
    "back_image_url",
    "has_back_printing",
    "status",
    "horizontal_enabled",
    "vertical_enabled",
    "all_over_enabled",
    "import_batch_id",
    "is_active",
)

PUBLIC_SORTS = {
    "name": "name ASC",
    "price": "price ASC NULLS LAST",
    "price_desc": "price DESC NULLS LAST",
    "newest": "created_at DESC",
}


def _item(row) -> Dict[str, Any]:
    return record_to_dict(row, JSON_FIELDS)


def _value(field: str, value):
    if field in JSON_FIELDS:
        return json.dumps(value or [])
    return value


def _placeholder(field: str, idx: int) -> str:
    return f"${idx}::jsonb" if field in JSON_FIELDS else f"${idx}"


async def sku_exists(sku: str, exclude_id: Optional[str] = None) -> bool:
    pool = await get_pool()
    async with pool.acquire() as conn:
        if exclude_id:
            found = await conn.fetchval(
                "SELECT 1 FROM gift_items WHERE sku = $1 AND id <> $2", sku, exclude_id
            )
        else:
            found = await conn.fetchval("SELECT 1 FROM gift_items WHERE sku = $1", sku)
        return found is not None


async def create_gift_item(data: Dict[str, Any], created_by: Optional[str] = None) -> Dict[str, Any]:
    """Insert a gift item. Unknown keys in data are ignored."""
    fields = [f for f in GIFT_ITEM_FIELDS if f in data]
    columns = fields + ["created_by", "updated_by"]
    placeholders = [_placeholder(f, i) for i, f in enumerate(fields, start=1)]
    placeholders += [f"${len(fields) + 1}", f"${len(fields) + 1}"]
    values = [_value(f, data[f]) for f in fields] + [created_by]

    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            f"""
            INSERT INTO gift_items ({", ".join(columns)})
            VALUES ({", ".join(placeholders)})
            RETURNING *
            """,
            *values,
        )
        return _item(row)


async def get_gift_item(item_id: str, include_deleted: bool = False) -> Optional[Dict[str, Any]]:
    if not is_uuid(item_id):
        return None
    pool = await get_pool()
    async with pool.acquire() as conn:
        query = "SELECT * FROM gift_items WHERE id = $1"
        if not include_deleted:
            query += " AND status <> 'deleted'"
        row = await conn.fetchrow(query, item_id)
        return _item(row) if row else None


async def get_gift_items_by_ids(item_ids: List[str]) -> List[Dict[str, Any]]:
    ids = [i for i in item_ids if is_uuid(i)]
    if not ids:
        return []
    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            "SELECT * FROM gift_items WHERE id = ANY($1::uuid[]) AND status <> 'deleted'",
            ids,
        )
        return [_item(r) for r in rows]


async def list_admin_gift_items(
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> Dict[str, Any]:
    """All non-deleted items, newest first."""
    conditions = ["status <> 'deleted'"]
    params: list = []
    if status:
        params.append(status)
        conditions.append(f"status = ${len(params)}")
    if category:
        params.append(category.lower())
        conditions.append(f"category = ${len(params)}")
    if search:
        params.append(f"%{search}%")
        n = len(params)
        conditions.append(f"(name ILIKE ${n} OR description ILIKE ${n} OR sku ILIKE ${n})")
    where = " AND ".join(conditions)

    pool = await get_pool()
    async with pool.acquire() as conn:
        total = await conn.fetchval(f"SELECT COUNT(*) FROM gift_items WHERE {where}", *params)
        rows = await conn.fetch(
            f"""SELECT * FROM gift_items WHERE {where}
                ORDER BY created_at DESC
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}""",
            *params, limit, offset,
        )
        return {"products": [_item(r) for r in rows], "total": total}


async def update_gift_item(
    item_id: str, fields: Dict[str, Any], updated_by: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Update the given columns. Returns the updated row, or None if missing."""
    parts = ["updated_at = NOW()", "updated_by = $2"]
    values: list = [item_id, updated_by]
    idx = 3
    for field in GIFT_ITEM_FIELDS:
        if field in fields:
            parts.append(f"{field} = {_placeholder(field, idx)}")
            values.append(_value(field, fields[field]))
            idx += 1

    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            f"UPDATE gift_items SET {', '.join(parts)} WHERE id = $1 RETURNING *",
            *values,
        )
        return _item(row) if row else None


async def soft_delete_gift_items(item_ids: List[str], user_id: Optional[str] = None) -> int:
    pool = await get_pool()
    async with pool.acquire() as conn:
        result = await conn.execute(
            """
            UPDATE gift_items
            SET status = 'deleted', deleted_at = NOW(), updated_at = NOW(), updated_by = $2
            WHERE id = ANY($1::uuid[]) AND status <> 'deleted'
            """,
            item_ids, user_id,
        )
        return int(result.split()[-1])


async def get_items_by_batch(batch_id: str) -> List[Dict[str, Any]]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            "SELECT id, sku, name FROM gift_items WHERE import_batch_id = $1", batch_id
        )
        return [record_to_dict(r) for r in rows]


async def delete_items_by_batch(batch_id: str) -> List[Dict[str, Any]]:
    """Hard-delete every item created by one bulk import."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            "DELETE FROM gift_items WHERE import_batch_id = $1 RETURNING id, sku, name",
            batch_id,
        )
        return [record_to_dict(r) for r in rows]


async def set_placement_enabled(item_id: str, placement_type: str, enabled: bool) -> None:
    column = {
        "horizontal": "horizontal_enabled",
        "vertical": "vertical_enabled",
        "all_over": "all_over_enabled",
    }[placement_type]
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            f"UPDATE gift_items SET {column} = $2, updated_at = NOW() WHERE id = $1",
            item_id, enabled,
        )


# --- Public catalog ---

async def list_public_gift_items(
    category: Optional[str] = None,
    search: Optional[str] = None,
    tags: Optional[List[str]] = None,
    sort: str = "name",
    limit: int = 20,
    offset: int = 0,
) -> Dict[str, Any]:
    conditions = ["status = 'active'", "is_active = TRUE"]
    params: list = []
    if category:
        params.append(category.lower())
        conditions.append(f"category = ${len(params)}")
    if search:
        params.append(f"%{search}%")
        n = len(params)
        conditions.append(f"(name ILIKE ${n} OR description ILIKE ${n} OR sku ILIKE ${n})")
    if tags:
        params.append(tags)
        conditions.append(f"tags ?| ${len(params)}::text[]")
    where = " AND ".join(conditions)
    order = PUBLIC_SORTS.get(sort, PUBLIC_SORTS["name"])

    pool = await get_pool()
    async with pool.acquire() as conn:
        total = await conn.fetchval(f"SELECT COUNT(*) FROM gift_items WHERE {where}", *params)
        rows = await conn.fetch(
            f"""SELECT * FROM gift_items WHERE {where}
                ORDER BY {order}
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}""",
            *params, limit, offset,
        )
        return {"products": [_item(r) for r in rows], "total": total}


async def get_public_gift_item(item_id: str) -> Optional[Dict[str, Any]]:
    if not is_uuid(item_id):
        return None
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM gift_items WHERE id = $1 AND status = 'active' AND is_active = TRUE",
            item_id,
        )
        return _item(row) if row else None


async def get_catalog_facets() -> Dict[str, List[str]]:
    """Distinct categories and tags among publicly visible items."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        cat_rows = await conn.fetch(
            """SELECT DISTINCT category FROM gift_items
               WHERE status = 'active' AND is_active = TRUE ORDER BY category"""
        )
        tag_rows = await conn.fetch(
            """SELECT DISTINCT jsonb_array_elements_text(tags) AS tag FROM gift_items
               WHERE status = 'active' AND is_active = TRUE ORDER BY tag"""
        )
        return {
            "categories": [r["category"] for r in cat_rows],
            "tags": [r["tag"] for r in tag_rows],
        }


# --- Statistics ---

async def get_product_counts() -> Dict[str, int]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE status = 'active') AS active,
                COUNT(*) FILTER (WHERE status = 'inactive') AS inactive,
                COUNT(*) FILTER (WHERE status = 'draft') AS draft,
                COUNT(*) FILTER (WHERE created_at >= NOW() - INTERVAL '7 days') AS created_this_week,
                COUNT(*) FILTER (WHERE created_at >= NOW() - INTERVAL '30 days') AS created_this_month,
                COUNT(*) FILTER (WHERE horizontal_enabled) AS with_horizontal,
                COUNT(*) FILTER (WHERE vertical_enabled) AS with_vertical,
                COUNT(*) FILTER (WHERE all_over_enabled) AS with_all_over
            FROM gift_items
            WHERE status <> 'deleted'
            """
        )
        return dict(row)


async def get_category_counts() -> List[Dict[str, Any]]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            SELECT category,
                   COUNT(*) AS total,
                   COUNT(*) FILTER (WHERE status = 'active') AS active,
                   COUNT(*) FILTER (WHERE status <> 'active') AS inactive
            FROM gift_items
            WHERE status <> 'deleted'
            GROUP BY category
            ORDER BY total DESC
            """
        )
        return [dict(r) for r in rows]
