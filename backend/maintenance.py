"""
Periodic cleanup jobs.

Expires admin sessions, purges used/expired reset tokens and mockup
sessions, and applies the audit log retention policy.
"""

import logging
import os

from apscheduler.schedulers.asyncio import AsyncIOScheduler

import audit
import database as db
import sessions
from config import AUDIT_RETENTION_DAYS

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    SESSION_CLEANUP_MINUTES = 15

    def __init__(self, audit_retention_days: int = AUDIT_RETENTION_DAYS):
        self.audit_retention_days = audit_retention_days
        self.scheduler = AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    async def cleanup_sessions(self) -> int:
        try:
            return await sessions.cleanup_expired_sessions()
        except Exception as e:
            logger.warning("Session cleanup failed: %s", e)
            return 0

    async def cleanup_reset_tokens(self) -> int:
        try:
            count = await db.delete_expired_reset_tokens()
        except Exception as e:
            logger.warning("Reset token cleanup failed: %s", e)
            return 0
        if count:
            logger.info("Deleted %d expired password reset tokens", count)
        return count

    async def cleanup_mockup_sessions(self) -> int:
        try:
            count = await db.delete_expired_mockup_sessions()
        except Exception as e:
            logger.warning("Mockup session cleanup failed: %s", e)
            return 0
        if count:
            logger.info("Deleted %d expired mockup sessions", count)
        return count

    async def apply_audit_retention(self) -> int:
        try:
            count = await audit.apply_retention_policy(self.audit_retention_days)
        except Exception as e:
            logger.warning("Audit retention failed: %s", e)
            return 0
        logger.info("Audit retention removed %d rows older than %d days", count, self.audit_retention_days)
        return count

    def start(self):
        self.scheduler.add_job(
            self.cleanup_sessions,
            "interval",
            minutes=self.SESSION_CLEANUP_MINUTES,
            id="session_cleanup",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.cleanup_reset_tokens,
            "interval",
            hours=1,
            id="reset_token_cleanup",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.cleanup_mockup_sessions,
            "interval",
            hours=1,
            id="mockup_session_cleanup",
            replace_existing=True,
        )
        # Daily at 03:30 UTC
        self.scheduler.add_job(
            self.apply_audit_retention,
            "cron",
            hour=3,
            minute=30,
            id="audit_retention",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Maintenance scheduler started (%d jobs)", len(self.scheduler.get_jobs()))

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Maintenance scheduler stopped")


def retention_days_from_env() -> int:
    try:
        return int(os.getenv("AUDIT_RETENTION_DAYS", AUDIT_RETENTION_DAYS))
    except ValueError:
        return AUDIT_RETENTION_DAYS
