"""
Storage backends.

PersistenceGateway routes every operation to the durable database or, when
it is disabled or fails, to the process-local InMemoryStore.
"""

from chainpulse.storage.gateway import PersistenceGateway
from chainpulse.storage.memory import InMemoryStore


__all__ = [
    "InMemoryStore",
    "PersistenceGateway",
]
