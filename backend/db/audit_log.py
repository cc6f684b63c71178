"""Audit log persistence."""

import json
from datetime import datetime
from typing import Optional, List, Dict, Any
from db.connection import get_pool, record_to_dict

JSON_FIELDS = ("details", "old_values", "new_values")


def _dumps(value):
    return json.dumps(value, default=str) if value is not None else None


async def insert_audit_entry(entry: Dict[str, Any]) -> None:
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO audit_log (user_id, user_email, action, resource_type, resource_id,
                                   resource_name, details, old_values, new_values,
                                   ip_address, user_agent, session_id, request_id)
            VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8::jsonb, $9::jsonb, $10, $11, $12, $13)
            """,
            entry.get("user_id"), entry.get("user_email"), entry["action"],
            entry.get("resource_type"), entry.get("resource_id"), entry.get("resource_name"),
            _dumps(entry.get("details") or {}), _dumps(entry.get("old_values")),
            _dumps(entry.get("new_values")),
            entry.get("ip_address"), entry.get("user_agent"),
            entry.get("session_id"), entry.get("request_id"),
        )


async def query_audit_logs(
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """Filtered audit rows, newest first."""
    conditions = []
    params: list = []
    for column, value in (
        ("user_id", user_id),
        ("action", action),
        ("resource_type", resource_type),
        ("resource_id", resource_id),
    ):
        if value:
            params.append(value)
            conditions.append(f"{column} = ${len(params)}")
    if start_date:
        params.append(start_date)
        conditions.append(f"created_at >= ${len(params)}")
    if end_date:
        params.append(end_date)
        conditions.append(f"created_at <= ${len(params)}")

    query = "SELECT * FROM audit_log"
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY created_at DESC"
    if limit:
        params.append(limit)
        query += f" LIMIT ${len(params)}"
    if offset:
        params.append(offset)
        query += f" OFFSET ${len(params)}"

    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(query, *params)
        return [record_to_dict(r, JSON_FIELDS) for r in rows]


async def delete_audit_logs_before(cutoff: datetime) -> int:
    pool = await get_pool()
    async with pool.acquire() as conn:
        result = await conn.execute("DELETE FROM audit_log WHERE created_at < $1", cutoff)
        return int(result.split()[-1])
