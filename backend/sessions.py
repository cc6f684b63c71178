"""
Managed admin sessions.

Sessions have an absolute lifetime (12 hours, or 30 days with remember-me)
and an idle timeout of 30 minutes. A user may hold a limited number of
concurrent sessions; the oldest is deactivated to make room.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

import database as db
from auth import SessionValidation, absolute_expiry, check_session_expiry, idle_expiry
from config import (
    ENFORCE_SINGLE_SESSION,
    MAX_CONCURRENT_SESSIONS,
    SESSION_ACTIVITY_UPDATE_INTERVAL,
    SESSION_PURGE_AFTER_DAYS,
)

logger = logging.getLogger(__name__)


async def create_managed_session(
    user_id: str,
    session_id: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    remember_me: bool = False,
    device_info: Optional[str] = None,
) -> Dict[str, Any]:
    if ENFORCE_SINGLE_SESSION:
        await db.deactivate_user_sessions(user_id)
    else:
        active = await db.count_active_sessions(user_id)
        if active >= MAX_CONCURRENT_SESSIONS:
            evicted = await db.deactivate_oldest_session(user_id)
            logger.info("Session limit reached for user %s, deactivated %s", user_id, evicted)

    now = datetime.now(timezone.utc)
    return await db.insert_admin_session(
        user_id=user_id,
        session_id=session_id,
        expires_at=absolute_expiry(now, remember_me),
        idle_expires_at=idle_expiry(now),
        ip_address=ip_address,
        user_agent=user_agent,
        device_info=device_info,
    )


async def validate_and_refresh_session(session_id: str) -> SessionValidation:
    """Check a session and bump its activity timestamp if due."""
    session = await db.get_admin_session(session_id)
    if not session:
        return SessionValidation(is_valid=False, reason="invalid")

    now = datetime.now(timezone.utc)
    validation = check_session_expiry(session, now)
    if not validation.is_valid:
        await db.deactivate_session(session_id)
        return validation

    since_update = (now - session["last_activity"]).total_seconds()
    if since_update > SESSION_ACTIVITY_UPDATE_INTERVAL:
        await db.touch_session(session_id, idle_expiry(now))
    return validation


async def get_user_sessions(user_id: str) -> List[Dict[str, Any]]:
    sessions = await db.get_active_sessions(user_id)
    return [
        {
            "sessionId": s["session_id"],
            "createdAt": s["created_at"],
            "lastActivity": s["last_activity"],
            "expiresAt": s["expires_at"],
            "idleExpiresAt": s.get("idle_expires_at") or s["expires_at"],
            "ipAddress": s.get("ip_address"),
            "userAgent": s.get("user_agent"),
            "deviceInfo": s.get("device_info"),
            "isActive": s["is_active"],
        }
        for s in sessions
    ]


async def terminate_session(session_id: str, user_id: Optional[str] = None) -> bool:
    return await db.deactivate_session(session_id, user_id)


async def terminate_other_sessions(user_id: str, current_session_id: str) -> int:
    return await db.deactivate_user_sessions(user_id, except_session_id=current_session_id)


async def terminate_all_user_sessions(user_id: str) -> int:
    return await db.deactivate_user_sessions(user_id)


def summarize_sessions(sessions: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Session counts and mean duration in minutes.

    Active sessions run until their last activity; ended ones until they
    were last updated.
    """
    active = sum(1 for s in sessions if s["is_active"])
    durations = []
    for s in sessions:
        end = s["last_activity"] if s["is_active"] else (s.get("updated_at") or s["last_activity"])
        durations.append((end - s["created_at"]).total_seconds())
    average = sum(durations) / len(durations) / 60 if durations else 0
    return {
        "totalSessions": len(sessions),
        "activeSessions": active,
        "expiredSessions": len(sessions) - active,
        "averageSessionDuration": round(average, 2),
    }


async def get_session_statistics(user_id: Optional[str] = None) -> Dict[str, Any]:
    return summarize_sessions(await db.get_session_rows(user_id))


async def cleanup_expired_sessions() -> int:
    count = await db.expire_stale_sessions(SESSION_PURGE_AFTER_DAYS)
    if count:
        logger.info("Deactivated %d expired admin sessions", count)
    return count
