#!/usr/bin/env python3
"""Initialize analytics database tables."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger  # noqa: E402

from chainpulse.config.database import create_engine, health_check, init_schema  # noqa: E402
from chainpulse.config.settings import settings  # noqa: E402

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database() -> None:
    """Create all analytics tables."""
    if not settings.database_url:
        logger.error("DATABASE_URL not set")
        sys.exit(1)

    logger.info("Connecting to database...")
    engine = create_engine(settings, pooled=False)

    try:
        if not await health_check(engine):
            logger.error("Database is not healthy. Please check your database connection.")
            sys.exit(1)

        logger.info("Creating tables (checkfirst=True)...")
        await init_schema(engine)
    finally:
        await engine.dispose()

    logger.success("Analytics tables created successfully!")


if __name__ == "__main__":
    asyncio.run(init_database())
