"""Background job scheduler.

APScheduler-based maintenance tasks. Expiry of access sessions is evaluated
on every read, so nothing here affects authorization; the purge job only
keeps the session table from growing without bound.
"""

from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from apptime_api.config import settings
from apptime_api.database import get_db_session
from apptime_api.logging_config import get_logger
from apptime_api.services.access_sessions import purge_expired_sessions

logger = get_logger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


async def purge_expired_sessions_job() -> None:
    """Delete access sessions that expired more than the retention period ago."""
    older_than = datetime.now(UTC) - timedelta(days=settings.session_retention_days)

    logger.info("Starting expired access session purge")

    try:
        async with get_db_session() as db:
            deleted = await purge_expired_sessions(db, older_than)
    except Exception as e:
        logger.error("Expired access session purge failed", error=str(e))
        return

    logger.info(
        "Expired access session purge completed",
        records_deleted=deleted,
        retention_days=settings.session_retention_days,
    )


def start_scheduler() -> AsyncIOScheduler | None:
    """Start the background job scheduler.

    Returns:
        The started scheduler instance, or None when no jobs are enabled
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return scheduler

    if not settings.session_purge_enabled:
        logger.info("No background jobs enabled, scheduler not started")
        return None

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        purge_expired_sessions_job,
        trigger=IntervalTrigger(hours=settings.session_purge_interval_hours),
        id="access_session_purge",
        name="Expired Access Session Purge",
        replace_existing=True,
    )
    logger.info(
        "Scheduled access session purge job",
        interval_hours=settings.session_purge_interval_hours,
    )

    scheduler.start()
    logger.info("Background scheduler started")

    return scheduler


def stop_scheduler() -> None:
    """Stop the background job scheduler."""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped")


def get_scheduler() -> AsyncIOScheduler | None:
    """Get the current scheduler instance, or None if not started."""
    return scheduler
