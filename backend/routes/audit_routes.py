import io
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

import audit
from audit import AuditAction
from config import AUDIT_RETENTION_DAYS
from deps import AuthUser, require_any_role, require_permission

router = APIRouter(prefix="/api/admin/audit", tags=["audit"])


class RetentionRequest(BaseModel):
    daysToKeep: int = AUDIT_RETENTION_DAYS


def _parse_date(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@router.get("")
async def list_audit_logs(
    userId: Optional[str] = None,
    action: Optional[str] = None,
    resourceType: Optional[str] = None,
    resourceId: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    user: AuthUser = Depends(require_permission("can_view_audit_logs")),
):
    limit = min(max(limit, 1), 500)
    logs = await audit.get_audit_logs(
        user_id=userId,
        action=action,
        resource_type=resourceType,
        resource_id=resourceId,
        start_date=_parse_date(startDate, "startDate"),
        end_date=_parse_date(endDate, "endDate"),
        limit=limit,
        offset=max(offset, 0),
    )
    return {"logs": logs, "limit": limit, "offset": offset}


@router.get("/export")
async def export_audit_logs(
    request: Request,
    userId: Optional[str] = None,
    action: Optional[str] = None,
    resourceType: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    user: AuthUser = Depends(require_permission("can_export_data")),
):
    csv_text = await audit.export_audit_logs(
        user_id=userId,
        action=action,
        resource_type=resourceType,
        start_date=_parse_date(startDate, "startDate"),
        end_date=_parse_date(endDate, "endDate"),
    )
    await audit.log_user_action(
        user, AuditAction.BULK_EXPORT, request,
        resource_type="audit_log",
        details={"filters": {"userId": userId, "action": action, "resourceType": resourceType,
                             "startDate": startDate, "endDate": endDate}},
    )
    filename = f"audit-log-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.csv"
    return StreamingResponse(
        io.BytesIO(csv_text.encode()),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/report")
async def audit_report(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    groupBy: str = "action",
    user: AuthUser = Depends(require_permission("can_view_audit_logs")),
):
    """Activity summary; defaults to the last 30 days."""
    if groupBy not in ("user", "action", "resource_type"):
        raise HTTPException(status_code=400, detail=f"Invalid groupBy: {groupBy}")
    end = _parse_date(endDate, "endDate") or datetime.now(timezone.utc)
    start = _parse_date(startDate, "startDate") or end - timedelta(days=30)
    if start > end:
        raise HTTPException(status_code=400, detail="startDate must be before endDate")
    return await audit.generate_report(start, end, groupBy)


@router.post("/retention")
async def apply_retention(
    req: RetentionRequest,
    request: Request,
    user: AuthUser = Depends(require_any_role("super_admin")),
):
    if req.daysToKeep < 1:
        raise HTTPException(status_code=400, detail="daysToKeep must be at least 1")
    deleted = await audit.apply_retention_policy(req.daysToKeep)
    await audit.log_user_action(
        user, AuditAction.SETTINGS_UPDATE, request,
        resource_type="audit_log",
        details={"retentionDays": req.daysToKeep, "deleted": deleted},
    )
    return {"success": True, "deleted": deleted, "daysToKeep": req.daysToKeep}
