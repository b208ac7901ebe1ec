"""
Async runner for dramatiq tasks.

Runs async code in dramatiq actors on one event loop per worker thread,
and builds analytics services bound to that loop.
"""

import asyncio
import threading
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from loguru import logger

from chainpulse.config.database import create_engine, create_session_maker, health_check
from chainpulse.config.settings import settings
from chainpulse.container import AnalyticsServices, build_services

T = TypeVar("T")

# Thread-local storage for event loops
_thread_local = threading.local()


def get_event_loop() -> asyncio.AbstractEventLoop:
    """
    Get or create event loop for current thread.

    Reusing one loop per thread prevents "Future attached to a different
    loop" errors with SQLAlchemy connections.
    """
    loop = getattr(_thread_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.loop = loop
        logger.debug(f"Created new event loop for thread {threading.current_thread().name}")
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run async coroutine in the thread's event loop.

    Args:
        coro: Async coroutine to run

    Returns:
        Result of the coroutine
    """
    loop = get_event_loop()
    try:
        return loop.run_until_complete(coro)
    except Exception as e:
        logger.exception(f"Error running async coroutine: {e}")
        raise


@asynccontextmanager
async def task_services() -> AsyncIterator[AnalyticsServices]:
    """
    Analytics services for one worker task.

    Uses a NullPool engine created on the current loop and no chain
    connections; the engine is disposed on exit.
    """
    if not settings.durable_backend_configured:
        raise RuntimeError("Worker tasks require a configured DATABASE_URL")

    engine = create_engine(settings, pooled=False)
    if not await health_check(engine):
        await engine.dispose()
        # Falling back to memory here would compile empty snapshots
        raise RuntimeError("Database is not healthy")

    services = build_services(
        settings,
        session_maker=create_session_maker(engine),
        connections={},
        watched=[],
    )
    try:
        yield services
    finally:
        await engine.dispose()
