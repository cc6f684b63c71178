"""Admin session rows (see sessions.py for the managed-session rules)."""

from datetime import datetime
from typing import Optional, List, Dict, Any
from db.connection import get_pool, record_to_dict


async def insert_admin_session(
    user_id: str,
    session_id: str,
    expires_at: datetime,
    idle_expires_at: datetime,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    device_info: Optional[str] = None,
) -> Dict[str, Any]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO admin_sessions (user_id, session_id, expires_at, idle_expires_at,
                                        ip_address, user_agent, device_info,
                                        last_activity, is_active)
            VALUES ($1, $2, $3, $4, $5, $6, $7, NOW(), TRUE)
            RETURNING *
            """,
            user_id, session_id, expires_at, idle_expires_at,
            ip_address, user_agent, device_info,
        )
        return record_to_dict(row)


async def get_admin_session(session_id: str, active_only: bool = True) -> Optional[Dict[str, Any]]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        query = "SELECT * FROM admin_sessions WHERE session_id = $1"
        if active_only:
            query += " AND is_active = TRUE"
        row = await conn.fetchrow(query, session_id)
        return record_to_dict(row) if row else None


async def get_active_sessions(user_id: str) -> List[Dict[str, Any]]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            SELECT * FROM admin_sessions
            WHERE user_id = $1 AND is_active = TRUE
            ORDER BY last_activity DESC
            """,
            user_id,
        )
        return [record_to_dict(r) for r in rows]


async def count_active_sessions(user_id: str) -> int:
    pool = await get_pool()
    async with pool.acquire() as conn:
        return await conn.fetchval(
            "SELECT COUNT(*) FROM admin_sessions WHERE user_id = $1 AND is_active = TRUE",
            user_id,
        )


async def deactivate_oldest_session(user_id: str) -> Optional[str]:
    """Deactivate the user's oldest active session. Returns its session_id."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        return await conn.fetchval(
            """
            UPDATE admin_sessions SET is_active = FALSE, updated_at = NOW()
            WHERE id = (
                SELECT id FROM admin_sessions
                WHERE user_id = $1 AND is_active = TRUE
                ORDER BY created_at ASC LIMIT 1
            )
            RETURNING session_id
            """,
            user_id,
        )


async def deactivate_session(session_id: str, user_id: Optional[str] = None) -> bool:
    pool = await get_pool()
    async with pool.acquire() as conn:
        if user_id:
            result = await conn.execute(
                """UPDATE admin_sessions SET is_active = FALSE, updated_at = NOW()
                   WHERE session_id = $1 AND user_id = $2""",
                session_id, user_id,
            )
        else:
            result = await conn.execute(
                "UPDATE admin_sessions SET is_active = FALSE, updated_at = NOW() WHERE session_id = $1",
                session_id,
            )
        return result != "UPDATE 0"


async def deactivate_user_sessions(user_id: str, except_session_id: Optional[str] = None) -> int:
    pool = await get_pool()
    async with pool.acquire() as conn:
        if except_session_id:
            result = await conn.execute(
                """UPDATE admin_sessions SET is_active = FALSE, updated_at = NOW()
                   WHERE user_id = $1 AND session_id <> $2 AND is_active = TRUE""",
                user_id, except_session_id,
            )
        else:
            result = await conn.execute(
                """UPDATE admin_sessions SET is_active = FALSE, updated_at = NOW()
                   WHERE user_id = $1 AND is_active = TRUE""",
                user_id,
            )
        return int(result.split()[-1])


async def touch_session(session_id: str, idle_expires_at: datetime) -> None:
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """UPDATE admin_sessions
               SET last_activity = NOW(), idle_expires_at = $2, updated_at = NOW()
               WHERE session_id = $1""",
            session_id, idle_expires_at,
        )


async def get_session_rows(user_id: Optional[str] = None) -> List[Dict[str, Any]]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        if user_id:
            rows = await conn.fetch("SELECT * FROM admin_sessions WHERE user_id = $1", user_id)
        else:
            rows = await conn.fetch("SELECT * FROM admin_sessions")
        return [record_to_dict(r) for r in rows]


async def expire_stale_sessions(purge_after_days: int = 30) -> int:
    """Deactivate sessions past either expiry and purge very old rows.

    Returns how many sessions were deactivated.
    """
    pool = await get_pool()
    async with pool.acquire() as conn:
        result = await conn.execute(
            """
            UPDATE admin_sessions SET is_active = FALSE, updated_at = NOW()
            WHERE is_active = TRUE
              AND (expires_at < NOW() OR idle_expires_at < NOW())
            """
        )
        await conn.execute(
            "DELETE FROM admin_sessions WHERE created_at < NOW() - make_interval(days => $1)",
            purge_after_days,
        )
        return int(result.split()[-1])
