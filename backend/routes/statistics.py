import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

import audit
import database as db
from deps import AuthUser, gemini, remove_bg, require_permission, statistics_cache
from remove_bg import remove_bg_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/statistics", tags=["statistics"])

CACHE_KEY = "statistics:dashboard"


def calculate_trend(total: int, recent: int) -> int:
    """Percent growth of the recent count over everything before it."""
    if total > recent:
        return round(recent / (total - recent) * 100)
    return 100 if recent > 0 else 0


def category_breakdown(rows):
    categories = {
        r["category"]: {"total": r["total"], "active": r["active"], "inactive": r["inactive"]}
        for r in rows
    }
    most_popular = sorted(categories.items(), key=lambda kv: kv[1]["total"], reverse=True)[:5]
    return {
        "categories": categories,
        "mostPopular": [{"category": name, **counts} for name, counts in most_popular],
    }


def _recent_activity(logs):
    return [
        {
            "id": log.get("id"),
            "action": log.get("action"),
            "userEmail": log.get("user_email"),
            "resourceType": log.get("resource_type"),
            "resourceName": log.get("resource_name"),
            "createdAt": log.get("created_at"),
        }
        for log in logs
    ]


def _system_health(database_ok: bool) -> dict:
    return {
        "database": "healthy" if database_ok else "unreachable",
        "gemini": "configured" if gemini.is_configured else "not_configured",
        "removeBg": "configured" if remove_bg.is_configured else "not_configured",
    }


async def collect_statistics() -> dict:
    """Dashboard aggregates. Raises 503 with the health block when the database is down."""
    try:
        database_ok = await db.ping()
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        database_ok = False
    if not database_ok:
        raise HTTPException(
            status_code=503,
            detail={"error": "Database unreachable", "systemHealth": _system_health(False)},
        )

    products = await db.get_product_counts()
    categories = await db.get_category_counts()
    constraints = await db.get_constraint_counts()
    mockups = await db.get_mockup_counts()
    recent = await audit.get_audit_logs(limit=10)

    return {
        "products": {
            "total": products["total"],
            "active": products["active"],
            "inactive": products["inactive"],
            "draft": products["draft"],
            "createdThisWeek": products["created_this_week"],
            "createdThisMonth": products["created_this_month"],
            "withHorizontal": products["with_horizontal"],
            "withVertical": products["with_vertical"],
            "withAllOver": products["with_all_over"],
            "trends": {
                "weekly": calculate_trend(products["total"], products["created_this_week"]),
                "monthly": calculate_trend(products["total"], products["created_this_month"]),
            },
        },
        **category_breakdown(categories),
        "constraints": constraints,
        "mockups": {
            "total": mockups["total"],
            "completed": mockups["completed"],
            "failed": mockups["failed"],
            "last24h": mockups["last_24h"],
        },
        "recentActivity": _recent_activity(recent),
        "systemHealth": _system_health(True),
        "removeBgUsage": remove_bg_usage.get_stats(),
        "lastUpdated": datetime.now(timezone.utc).isoformat(),
    }


@router.get("")
async def get_statistics(
    user: AuthUser = Depends(require_permission("can_view_analytics", "can_view_dashboard")),
):
    cached = statistics_cache.get(CACHE_KEY)
    if cached is not None:
        return cached
    stats = await collect_statistics()
    statistics_cache.set(CACHE_KEY, stats)
    return stats
