"""
Audit trail for admin actions.

Every mutating admin route records who did what to which resource. Writing
an entry never fails the request that triggered it.
"""

import csv
import io
import json
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from fastapi import Request

import database as db
from config import AUDIT_RETENTION_DAYS

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    PASSWORD_RESET = "PASSWORD_RESET"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PRODUCT_CREATE = "PRODUCT_CREATE"
    PRODUCT_UPDATE = "PRODUCT_UPDATE"
    PRODUCT_DELETE = "PRODUCT_DELETE"
    PRODUCT_DUPLICATE = "PRODUCT_DUPLICATE"
    PRODUCT_BULK_DELETE = "PRODUCT_BULK_DELETE"
    CONSTRAINT_CREATE = "CONSTRAINT_CREATE"
    CONSTRAINT_UPDATE = "CONSTRAINT_UPDATE"
    CONSTRAINT_DELETE = "CONSTRAINT_DELETE"
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"
    ROLE_CHANGE = "ROLE_CHANGE"
    BULK_IMPORT = "BULK_IMPORT"
    BULK_ROLLBACK = "BULK_ROLLBACK"
    BULK_EXPORT = "BULK_EXPORT"
    SETTINGS_UPDATE = "SETTINGS_UPDATE"


EXPORT_HEADERS = [
    "Timestamp",
    "User Email",
    "Action",
    "Resource Type",
    "Resource ID",
    "Resource Name",
    "IP Address",
    "Details",
]

GROUP_BY_COLUMNS = {"user": "user_email", "action": "action", "resource_type": "resource_type"}


def client_info(request: Request) -> Dict[str, str]:
    """IP address and user agent of the caller, honoring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.headers.get("x-real-ip") or "unknown"
    return {
        "ip_address": ip,
        "user_agent": request.headers.get("user-agent") or "unknown",
    }


async def log_action(
    action: AuditAction,
    user_id: Optional[str] = None,
    user_email: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    resource_name: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    session_id: Optional[str] = None,
) -> None:
    entry = {
        "action": action.value if isinstance(action, AuditAction) else action,
        "user_id": user_id or "system",
        "user_email": user_email or "system",
        "resource_type": resource_type,
        "resource_id": resource_id,
        "resource_name": resource_name,
        "details": details or {},
        "old_values": old_values,
        "new_values": new_values,
        "session_id": session_id,
    }
    if request is not None:
        entry.update(client_info(request))
        entry["request_id"] = request.headers.get("x-request-id")
    try:
        await db.insert_audit_entry(entry)
    except Exception as e:
        logger.warning("Failed to write audit log entry %s: %s", entry["action"], e)


async def log_user_action(user, action: AuditAction, request: Optional[Request] = None, **kwargs) -> None:
    """Shortcut for logging on behalf of an authenticated AuthUser."""
    await log_action(
        action,
        user_id=user.user_id,
        user_email=user.email,
        session_id=user.session_id,
        request=request,
        **kwargs,
    )


async def get_audit_logs(**filters) -> List[Dict[str, Any]]:
    return await db.query_audit_logs(**filters)


def logs_to_csv(logs: List[Dict[str, Any]]) -> str:
    if not logs:
        return ""
    buf = io.StringIO()
    buf.write(",".join(EXPORT_HEADERS) + "\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for log in logs:
        created = log.get("created_at")
        writer.writerow([
            created.isoformat() if isinstance(created, datetime) else (created or ""),
            log.get("user_email") or "",
            log.get("action") or "",
            log.get("resource_type") or "",
            log.get("resource_id") or "",
            log.get("resource_name") or "",
            log.get("ip_address") or "",
            json.dumps(log.get("details") or {}),
        ])
    return buf.getvalue().rstrip("\n")


async def export_audit_logs(**filters) -> str:
    return logs_to_csv(await get_audit_logs(**filters))


def build_report(
    logs: List[Dict[str, Any]], start: str, end: str, group_by: str = "action"
) -> Dict[str, Any]:
    column = GROUP_BY_COLUMNS.get(group_by, "action")
    counts = Counter(log.get(column) or "N/A" for log in logs)
    breakdown = [
        {group_by: key, "count": count}
        for key, count in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    ]
    return {
        "summary": {
            "total_actions": len(logs),
            "unique_users": len({log.get("user_id") for log in logs}),
            "date_range": {"start": start, "end": end},
        },
        "breakdown": breakdown,
    }


async def generate_report(start: datetime, end: datetime, group_by: str = "action") -> Dict[str, Any]:
    logs = await get_audit_logs(start_date=start, end_date=end)
    return build_report(logs, start.isoformat(), end.isoformat(), group_by)


async def apply_retention_policy(days_to_keep: int = AUDIT_RETENTION_DAYS) -> int:
    cutoff = datetime.now(timezone.utc) - timedelta(days=days_to_keep)
    deleted = await db.delete_audit_logs_before(cutoff)
    logger.info("Audit retention: removed %d entries older than %d days", deleted, days_to_keep)
    return deleted
