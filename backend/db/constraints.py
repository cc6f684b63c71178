"""Placement constraint queries."""

import json
from typing import Optional, List, Dict, Any
from db.connection import get_pool, is_uuid, record_to_dict

CONSTRAINT_FIELDS = (
    "constraint_image_url",
    "detected_area_pixels",
    "detected_area_percentage",
    "detected_area_x",
    "detected_area_y",
    "detected_area_width",
    "detected_area_height",
    "min_logo_width",
    "min_logo_height",
    "max_logo_width",
    "max_logo_height",
    "default_x_position",
    "default_y_position",
    "guidelines_text",
    "pattern_settings",
    "is_validated",
)


def _constraint(row) -> Dict[str, Any]:
    return record_to_dict(row, ("pattern_settings",))


async def get_constraint(constraint_id: str) -> Optional[Dict[str, Any]]:
    if not is_uuid(constraint_id):
        return None
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM placement_constraints WHERE id = $1", constraint_id
        )
        return _constraint(row) if row else None


async def find_constraint(item_id: str, placement_type: str, side: str = "front") -> Optional[Dict[str, Any]]:
    if not is_uuid(item_id):
        return None
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """SELECT * FROM placement_constraints
               WHERE item_id = $1 AND placement_type = $2 AND side = $3""",
            item_id, placement_type, side,
        )
        return _constraint(row) if row else None


async def list_item_constraints(item_id: str) -> List[Dict[str, Any]]:
    if not is_uuid(item_id):
        return []
    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            "SELECT * FROM placement_constraints WHERE item_id = $1 ORDER BY created_at",
            item_id,
        )
        return [_constraint(r) for r in rows]


async def create_constraint(
    item_id: str, placement_type: str, side: str, fields: Dict[str, Any]
) -> Dict[str, Any]:
    columns = ["item_id", "placement_type", "side"]
    values: list = [item_id, placement_type, side]
    placeholders = ["$1", "$2", "$3"]
    for field in CONSTRAINT_FIELDS:
        if field in fields and fields[field] is not None:
            columns.append(field)
            values.append(json.dumps(fields[field]) if field == "pattern_settings" else fields[field])
            cast = "::jsonb" if field == "pattern_settings" else ""
            placeholders.append(f"${len(values)}{cast}")

    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            f"""INSERT INTO placement_constraints ({", ".join(columns)})
                VALUES ({", ".join(placeholders)})
                RETURNING *""",
            *values,
        )
        return _constraint(row)


async def update_constraint(constraint_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    parts = ["updated_at = NOW()"]
    values: list = [constraint_id]
    for field in CONSTRAINT_FIELDS:
        if field in fields:
            value = fields[field]
            cast = ""
            if field == "pattern_settings":
                value = json.dumps(value or {})
                cast = "::jsonb"
            values.append(value)
            parts.append(f"{field} = ${len(values)}{cast}")

    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            f"UPDATE placement_constraints SET {', '.join(parts)} WHERE id = $1 RETURNING *",
            *values,
        )
        return _constraint(row) if row else None


async def delete_constraint(constraint_id: str) -> bool:
    pool = await get_pool()
    async with pool.acquire() as conn:
        result = await conn.execute(
            "DELETE FROM placement_constraints WHERE id = $1", constraint_id
        )
        return result != "DELETE 0"


async def get_constraint_counts() -> Dict[str, Any]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """SELECT COUNT(*) AS total,
                      COUNT(*) FILTER (WHERE is_validated) AS validated
               FROM placement_constraints"""
        )
        by_type = await conn.fetch(
            "SELECT placement_type, COUNT(*) AS count FROM placement_constraints GROUP BY placement_type"
        )
        return {
            "total": row["total"],
            "validated": row["validated"],
            "byPlacementType": {r["placement_type"]: r["count"] for r in by_type},
        }
