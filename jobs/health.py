"""
Health endpoints for the analytics process.

/health reports scheduler, listener and persistence state, /readiness
gates traffic on the scheduler, /liveness always answers.
"""

import asyncio
from typing import TYPE_CHECKING, Any

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger


if TYPE_CHECKING:
    from chainpulse.container import AnalyticsServices

SERVICES_KEY = web.AppKey("services", object)
SCHEDULER_KEY = web.AppKey("scheduler", object)


def _next_run_iso(job: Any) -> str | None:
    # Jobs of a scheduler that has not started yet have no next_run_time
    next_run = getattr(job, "next_run_time", None)
    return next_run.isoformat() if next_run else None


def build_health_report(
    services: "AnalyticsServices", scheduler: AsyncIOScheduler
) -> dict[str, Any]:
    """
    Collect process health.

    Args:
        services: Analytics service graph
        scheduler: Snapshot scheduler

    Returns:
        JSON-ready report
    """
    running = scheduler.running
    return {
        "status": "healthy" if running else "stopped",
        "scheduler_running": running,
        "jobs": [
            {"id": job.id, "next_run_time": _next_run_iso(job)}
            for job in scheduler.get_jobs()
        ],
        "persistence": services.gateway.mode,
        "listening_contracts": [
            {"chain_id": sub.chain_id, "address": sub.address, "name": sub.name}
            for sub in services.listener.list_contracts()
        ],
        "handlers_in_flight": services.listener.in_flight,
    }


async def health_handler(request: web.Request) -> web.Response:
    services = request.app.get(SERVICES_KEY)
    scheduler = request.app.get(SCHEDULER_KEY)
    if services is None or scheduler is None:
        return web.json_response(
            {"status": "unhealthy", "error": "Services not initialized"}, status=503
        )

    try:
        return web.json_response(build_health_report(services, scheduler))
    except Exception as e:
        logger.error(f"[Health] Health check failed: {e}")
        return web.json_response({"status": "unhealthy", "error": str(e)}, status=503)


async def readiness_handler(request: web.Request) -> web.Response:
    scheduler = request.app.get(SCHEDULER_KEY)
    ready = scheduler is not None and scheduler.running
    return web.json_response(
        {"status": "ready" if ready else "not_ready", "ready": ready},
        status=200 if ready else 503,
    )


async def liveness_handler(request: web.Request) -> web.Response:
    return web.json_response({"status": "alive", "alive": True})


def create_health_app(
    services: "AnalyticsServices | None" = None,
    scheduler: AsyncIOScheduler | None = None,
) -> web.Application:
    """Application with /health, /readiness and /liveness routes."""
    app = web.Application()
    app[SERVICES_KEY] = services
    app[SCHEDULER_KEY] = scheduler
    app.router.add_get("/health", health_handler)
    app.router.add_get("/readiness", readiness_handler)
    app.router.add_get("/liveness", liveness_handler)
    return app


async def start_health_server(
    services: "AnalyticsServices",
    scheduler: AsyncIOScheduler,
    host: str = "0.0.0.0",
    port: int = 8081,
) -> web.AppRunner:
    """
    Start the health server.

    Returns:
        AppRunner to pass to stop_health_server
    """
    runner = web.AppRunner(create_health_app(services, scheduler))
    await runner.setup()
    await web.TCPSite(runner, host, port).start()

    logger.info(f"[Health] Health server listening on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """Clean up the health server, giving up after ``timeout`` seconds."""
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("[Health] Health server stopped")
    except TimeoutError:
        logger.warning(f"[Health] Health server cleanup timed out after {timeout}s")
