"""
Dramatiq broker configuration.

Redis broker for analytics worker tasks (snapshot backfills and reruns).
Importing this module installs the broker as the dramatiq default.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from chainpulse.config.settings import Settings, settings

# Snapshot reruns back off up to 5 minutes between attempts
RETRY_MIN_BACKOFF_MS = 5_000
RETRY_MAX_BACKOFF_MS = 300_000


def redis_url(config: Settings) -> str:
    """Redis URL for the broker."""
    auth = f":{config.redis_password}@" if config.redis_password else ""
    return f"redis://{auth}{config.redis_host}:{config.redis_port}/{config.redis_db}"


def create_broker(config: Settings) -> RedisBroker:
    """
    Build the Redis broker with analytics middleware.

    The default Retries middleware is replaced so snapshot tasks back off
    long enough for a database restart.

    Args:
        config: Application settings

    Returns:
        RedisBroker
    """
    redis_broker = RedisBroker(url=redis_url(config))

    for middleware in list(redis_broker.middleware):
        if isinstance(middleware, Retries):
            redis_broker.middleware.remove(middleware)

    redis_broker.add_middleware(ShutdownNotifications())
    redis_broker.add_middleware(CurrentMessage())
    redis_broker.add_middleware(
        Retries(
            max_retries=3,
            min_backoff=RETRY_MIN_BACKOFF_MS,
            max_backoff=RETRY_MAX_BACKOFF_MS,
        )
    )
    return redis_broker


broker = create_broker(settings)
dramatiq.set_broker(broker)

logger.info(
    f"Dramatiq broker initialized: "
    f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
)
