"""
In-memory fallback backend.

One keyed map per entity type. Non-persistent across restarts. Accessed
only from synchronous fallback operations, so each operation runs to
completion without interleaving on the event loop.
"""

from collections import OrderedDict
from datetime import date

from chainpulse.schemas.records import (
    AnalyticsSession,
    AnalyticsUser,
    ContractAnalytics,
    DailySnapshot,
    EventRecord,
)


class InMemoryStore:
    """Process-local analytics state."""

    def __init__(self) -> None:
        # id -> event, in insertion order
        self.events: OrderedDict[str, EventRecord] = OrderedDict()
        self.sessions: dict[str, AnalyticsSession] = {}
        self.users: dict[str, AnalyticsUser] = {}
        self.contracts: dict[str, ContractAnalytics] = {}
        # contract address -> wallets seen interacting with it
        self.contract_wallets: dict[str, set[str]] = {}
        self.snapshots: dict[date, DailySnapshot] = {}

    def clear(self) -> None:
        """Drop all state."""
        self.events.clear()
        self.sessions.clear()
        self.users.clear()
        self.contracts.clear()
        self.contract_wallets.clear()
        self.snapshots.clear()

    def stats(self) -> dict[str, int]:
        """Entity counts, for health reporting."""
        return {
            "events": len(self.events),
            "sessions": len(self.sessions),
            "users": len(self.users),
            "contracts": len(self.contracts),
            "snapshots": len(self.snapshots),
        }
