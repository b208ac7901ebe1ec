"""
Repositories.

All SQL lives here; every operation has an in-memory counterpart routed
through the PersistenceGateway.
"""

from chainpulse.repositories.contract_repository import ContractRepository
from chainpulse.repositories.event_repository import EventRepository
from chainpulse.repositories.session_repository import SessionRepository
from chainpulse.repositories.snapshot_repository import SnapshotRepository
from chainpulse.repositories.user_repository import UserRepository


__all__ = [
    "ContractRepository",
    "EventRepository",
    "SessionRepository",
    "SnapshotRepository",
    "UserRepository",
]
