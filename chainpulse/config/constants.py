"""
Analytics constants.

Centralized windows, limits and chain ids for the analytics pipeline.
"""

from datetime import timedelta

# ========================================================================
# CHAINS
# ========================================================================

CHAIN_ID_ETHEREUM = 1
CHAIN_ID_POLYGON = 137
CHAIN_ID_BASE = 8453

# ========================================================================
# TIME WINDOWS
# ========================================================================

ACTIVE_USER_WINDOW = timedelta(hours=24)  # Trailing, evaluated at call time
REAL_TIME_WINDOW = timedelta(hours=1)

DASHBOARD_PERIODS: dict[str, timedelta | None] = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "all": None,
}

# ========================================================================
# LIMITS
# ========================================================================

DEFAULT_PAGE_LIMIT = 100
SNAPSHOT_TOP_LIMIT = 10
DASHBOARD_TOP_LIMIT = 5
DASHBOARD_RECENT_EVENTS = 10
REAL_TIME_TOP_PAGES = 10
REAL_TIME_RECENT_EVENTS = 20

# Wallet-like argument names, checked in priority order
WALLET_ARG_PRIORITY = ("user", "owner", "from")
