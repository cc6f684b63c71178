"""Admin user queries."""

from typing import Optional, Dict, Any
from db.connection import get_pool, is_uuid, record_to_dict


async def get_admin_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM admin_users WHERE email = $1", email.lower()
        )
        return record_to_dict(row) if row else None


async def get_admin_user(user_id: str) -> Optional[Dict[str, Any]]:
    if not is_uuid(user_id):
        return None
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow("SELECT * FROM admin_users WHERE id = $1", user_id)
        return record_to_dict(row) if row else None


async def create_admin_user(email: str, password_hash: str, role: str = "product_manager") -> Dict[str, Any]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO admin_users (email, password_hash, role)
            VALUES ($1, $2, $3::admin_role)
            ON CONFLICT (email) DO UPDATE SET
                password_hash = EXCLUDED.password_hash,
                role = EXCLUDED.role,
                updated_at = NOW()
            RETURNING *
            """,
            email.lower(), password_hash, role,
        )
        return record_to_dict(row)


async def update_last_login(user_id: str) -> None:
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            "UPDATE admin_users SET last_login = NOW(), updated_at = NOW() WHERE id = $1",
            user_id,
        )


async def update_admin_password(user_id: str, password_hash: str) -> bool:
    pool = await get_pool()
    async with pool.acquire() as conn:
        result = await conn.execute(
            "UPDATE admin_users SET password_hash = $1, updated_at = NOW() WHERE id = $2",
            password_hash, user_id,
        )
        return result != "UPDATE 0"
