"""
Logging configuration.

Configures loguru sinks for the analytics process and workers.
Sets up log rotation and retention policies.
"""

import sys
from pathlib import Path

from loguru import logger

from chainpulse.config.settings import Settings


def setup_logging(settings: Settings) -> None:
    """Replace the default sink with stderr + rotating file sinks."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )

    Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        settings.log_file,
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        encoding="utf-8",
    )
