"""
Analytics services.
"""

from chainpulse.services.contract_analytics import ContractAnalyticsAggregator
from chainpulse.services.dashboard import RealTimeDashboardComposer
from chainpulse.services.event_store import EventStore
from chainpulse.services.ingestion import IngestionService
from chainpulse.services.session_tracker import SessionTracker
from chainpulse.services.snapshot_engine import SnapshotEngine
from chainpulse.services.user_analytics import UserAnalyticsAggregator


__all__ = [
    "ContractAnalyticsAggregator",
    "EventStore",
    "IngestionService",
    "RealTimeDashboardComposer",
    "SessionTracker",
    "SnapshotEngine",
    "UserAnalyticsAggregator",
]
