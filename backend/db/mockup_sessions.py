"""Mockup generation session queries."""

import json
from typing import Optional, Dict, Any

from config import MOCKUP_SESSION_TTL_HOURS
from db.connection import get_pool, is_uuid, record_to_dict


async def create_mockup_session(
    item_id: str,
    constraint_id: Optional[str] = None,
    original_logo_url: Optional[str] = None,
    generation_params: Optional[Dict[str, Any]] = None,
    session_id: Optional[str] = None,
) -> Dict[str, Any]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO mockup_sessions (session_id, item_id, constraint_id,
                                         original_logo_url, generation_params, status, expires_at)
            VALUES ($1, $2, $3, $4, $5::jsonb, 'processing',
                    NOW() + make_interval(hours => $6))
            RETURNING *
            """,
            session_id, item_id, constraint_id, original_logo_url,
            json.dumps(generation_params or {}), MOCKUP_SESSION_TTL_HOURS,
        )
        return record_to_dict(row, ("generation_params",))


async def complete_mockup_session(
    mockup_id: str,
    mockup_url: str,
    processed_logo_url: Optional[str] = None,
) -> None:
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """UPDATE mockup_sessions
               SET status = 'completed', mockup_url = $2, processed_logo_url = $3
               WHERE id = $1""",
            mockup_id, mockup_url, processed_logo_url,
        )


async def fail_mockup_session(mockup_id: str, error: str) -> None:
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            "UPDATE mockup_sessions SET status = 'failed', error_message = $2 WHERE id = $1",
            mockup_id, error[:1000],
        )


async def get_mockup_session(mockup_id: str) -> Optional[Dict[str, Any]]:
    """Return an unexpired mockup session."""
    if not is_uuid(mockup_id):
        return None
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM mockup_sessions WHERE id = $1 AND expires_at > NOW()", mockup_id
        )
        return record_to_dict(row, ("generation_params",)) if row else None


async def delete_expired_mockup_sessions() -> int:
    pool = await get_pool()
    async with pool.acquire() as conn:
        result = await conn.execute("DELETE FROM mockup_sessions WHERE expires_at < NOW()")
        return int(result.split()[-1])


async def get_mockup_counts() -> Dict[str, int]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """SELECT COUNT(*) AS total,
                      COUNT(*) FILTER (WHERE status = 'completed') AS completed,
                      COUNT(*) FILTER (WHERE status = 'failed') AS failed,
                      COUNT(*) FILTER (WHERE created_at >= NOW() - INTERVAL '24 hours') AS last_24h
               FROM mockup_sessions"""
        )
        return dict(row)
