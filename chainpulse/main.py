"""
Analytics process entry point.

Runs the blockchain listener, the daily snapshot scheduler and the health
server in one process, so the in-memory fallback store is shared by all
of them.
"""

import asyncio
import signal

from loguru import logger

from chainpulse.config.logging import setup_logging
from chainpulse.config.settings import settings
from chainpulse.container import build_services, initialize_persistence
from jobs.health import start_health_server, stop_health_server
from jobs.scheduler import create_snapshot_scheduler


async def main() -> None:
    """Initialize and run the analytics pipeline until SIGINT/SIGTERM."""
    setup_logging(settings)
    logger.info("Starting chainpulse analytics...")

    services = build_services(settings)
    await initialize_persistence(services)

    scheduler = create_snapshot_scheduler(services.snapshots, settings)
    scheduler.start()

    runner = None
    try:
        runner = await start_health_server(
            services, scheduler, port=settings.health_check_port
        )
    except Exception as e:
        logger.error(f"Failed to start health server: {e}")

    await services.listener.start()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    logger.success("Analytics pipeline running")
    await stop_event.wait()

    logger.info("Shutting down analytics...")
    scheduler.shutdown(wait=False)
    await services.close()
    if runner is not None:
        await stop_health_server(runner)
    logger.info("Analytics stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
