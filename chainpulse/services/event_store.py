"""
Event store.

Append-only store of ingested contract and UI events with filtered,
paginated query.
"""

from datetime import datetime

from loguru import logger

from chainpulse.repositories.event_repository import EventRepository
from chainpulse.schemas.records import (
    EventFilter,
    EventRecord,
    EventSort,
    Pagination,
    QueryResult,
)
from chainpulse.utils.datetime_utils import ensure_utc


class EventStore:
    """Facade over EventRepository."""

    def __init__(self, repository: EventRepository) -> None:
        self.repository = repository

    async def store(self, event: EventRecord) -> str:
        """
        Store event.

        Args:
            event: ContractEvent or UIEvent (id generated if absent)

        Returns:
            Event id
        """
        event_id = await self.repository.store(event)
        logger.debug(f"[EventStore] Stored {event.event_type} event {event_id}")
        return event_id

    async def query(
        self,
        flt: EventFilter | None = None,
        pagination: Pagination | None = None,
        sort: EventSort | None = None,
    ) -> QueryResult:
        """Filtered, paginated query. See EventRepository.query."""
        return await self.repository.query(flt, pagination, sort)

    async def get_by_id(self, event_id: str) -> EventRecord | None:
        return await self.repository.get_by_key(event_id)

    async def delete_by_id(self, event_id: str) -> bool:
        return await self.repository.delete_by_key(event_id)

    async def count_by_type(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> dict[str, int]:
        """
        Count events per type, both bounds inclusive.

        Returns:
            Map of event type -> count
        """
        return await self.repository.count_by_type(
            ensure_utc(start_date), ensure_utc(end_date), inclusive_end=True
        )
