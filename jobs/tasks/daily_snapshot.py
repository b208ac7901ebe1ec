"""
Daily snapshot task.

Compiles one day's analytics snapshot against the durable backend, for
backfills and reruns from worker processes.
"""

import dramatiq
from loguru import logger

from chainpulse.utils.datetime_utils import parse_day, utc_now
from jobs.async_runner import run_async, task_services
from jobs.broker import broker  # noqa: F401

SNAPSHOT_TIME_LIMIT = 10 * 60 * 1000  # 10 minutes


@dramatiq.actor(max_retries=3, time_limit=SNAPSHOT_TIME_LIMIT)
def compile_daily_snapshot(date_iso: str | None = None) -> None:
    """
    Compile the snapshot for one UTC day.

    Args:
        date_iso: Day as YYYY-MM-DD (default: today, UTC)
    """
    day = parse_day(date_iso) if date_iso else utc_now().date()
    logger.info(f"Starting snapshot compilation for {day.isoformat()}...")
    run_async(_compile_daily_snapshot_async(day.isoformat()))
    logger.info(f"Snapshot compilation for {day.isoformat()} complete")


async def _compile_daily_snapshot_async(date_iso: str) -> None:
    """Async implementation of snapshot compilation."""
    async with task_services() as services:
        await services.snapshots.create_daily_snapshot(date_iso)
