"""
Analytics models.

Importing this package registers every table on Base.metadata.
"""

from chainpulse.models.base import Base
from chainpulse.models.contract import ContractAnalyticsModel, ContractWallet
from chainpulse.models.enums import AnalyticsEventType
from chainpulse.models.event import AnalyticsEvent
from chainpulse.models.session import AnalyticsSessionModel
from chainpulse.models.snapshot import DailySnapshotModel
from chainpulse.models.user import AnalyticsUserModel


__all__ = [
    "AnalyticsEvent",
    "AnalyticsEventType",
    "AnalyticsSessionModel",
    "AnalyticsUserModel",
    "Base",
    "ContractAnalyticsModel",
    "ContractWallet",
    "DailySnapshotModel",
]
