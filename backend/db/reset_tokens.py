"""Password reset token queries."""

from datetime import datetime
from typing import Optional, Dict, Any
from db.connection import get_pool, record_to_dict


async def create_reset_token(user_id: str, token: str, expires_at: datetime) -> None:
    """Store a new token, invalidating any earlier unused ones for the user."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(
                "UPDATE password_reset_tokens SET is_used = TRUE WHERE user_id = $1 AND is_used = FALSE",
                user_id,
            )
            await conn.execute(
                """INSERT INTO password_reset_tokens (user_id, token, expires_at)
                   VALUES ($1, $2, $3)""",
                user_id, token, expires_at,
            )


async def get_valid_reset_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token row if it is unused and unexpired."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """SELECT * FROM password_reset_tokens
               WHERE token = $1 AND is_used = FALSE AND expires_at > NOW()""",
            token,
        )
        return record_to_dict(row) if row else None


async def mark_reset_token_used(token: str) -> None:
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            "UPDATE password_reset_tokens SET is_used = TRUE WHERE token = $1", token
        )


async def delete_expired_reset_tokens() -> int:
    pool = await get_pool()
    async with pool.acquire() as conn:
        result = await conn.execute(
            "DELETE FROM password_reset_tokens WHERE expires_at < NOW() OR is_used = TRUE"
        )
        return int(result.split()[-1])
