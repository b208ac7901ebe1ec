"""
Snapshot scheduler.

In-process APScheduler that compiles the previous UTC day's snapshot every
day, so it sees the same in-memory fallback store as the listener.
"""

from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from chainpulse.config.settings import Settings
from chainpulse.services.snapshot_engine import SnapshotEngine
from chainpulse.utils.datetime_utils import utc_now

SNAPSHOT_JOB_ID = "daily_snapshot"


async def compile_previous_day(engine: SnapshotEngine) -> None:
    """Compile the snapshot of yesterday (UTC)."""
    day = (utc_now() - timedelta(days=1)).date()
    try:
        await engine.create_daily_snapshot(day)
    except Exception as e:
        logger.exception(f"[Snapshot] Scheduled snapshot for {day.isoformat()} failed: {e}")


def create_snapshot_scheduler(engine: SnapshotEngine, settings: Settings) -> AsyncIOScheduler:
    """
    Build (not start) the scheduler with the daily snapshot job.

    Args:
        engine: Snapshot engine
        settings: Application settings (snapshot_hour_utc/snapshot_minute_utc)

    Returns:
        AsyncIOScheduler
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        compile_previous_day,
        trigger=CronTrigger(
            hour=settings.snapshot_hour_utc,
            minute=settings.snapshot_minute_utc,
            timezone="UTC",
        ),
        args=[engine],
        id=SNAPSHOT_JOB_ID,
        name="Compile daily analytics snapshot",
        replace_existing=True,
        misfire_grace_time=3600,
        coalesce=True,
    )
    logger.info(
        f"[Snapshot] Daily snapshot scheduled at "
        f"{settings.snapshot_hour_utc:02d}:{settings.snapshot_minute_utc:02d} UTC"
    )
    return scheduler
