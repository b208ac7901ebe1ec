"""
Event repository.

Data access layer for the append-only analytics event log.
"""

from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chainpulse.models.enums import AnalyticsEventType
from chainpulse.models.event import AnalyticsEvent
from chainpulse.repositories.base import BaseRepository, dialect_insert
from chainpulse.schemas.records import (
    ContractEvent,
    EventFilter,
    EventRecord,
    EventSort,
    Pagination,
    QueryResult,
    UIEvent,
)
from chainpulse.storage import InMemoryStore, PersistenceGateway
from chainpulse.utils.big_uint import BigUInt
from chainpulse.utils.datetime_utils import ensure_utc
from chainpulse.utils.exceptions import ValidationError
from chainpulse.utils.security import normalize_optional_address


# Sortable record attribute -> column
SORTABLE_FIELDS = {
    "timestamp": AnalyticsEvent.timestamp,
    "event_type": AnalyticsEvent.event_type,
    "wallet_address": AnalyticsEvent.wallet_address,
    "contract_address": AnalyticsEvent.contract_address,
    "chain_id": AnalyticsEvent.chain_id,
    "block_number": AnalyticsEvent.block_number,
}


def _in_window(
    ts: datetime, start: datetime | None, end: datetime | None, inclusive_end: bool = False
) -> bool:
    """Window check [start, end), or [start, end] with inclusive_end."""
    if start is not None and ts < start:
        return False
    if end is not None and (ts > end if inclusive_end else ts >= end):
        return False
    return True


class EventRepository(BaseRepository[AnalyticsEvent, EventRecord]):
    """Repository for ContractEvent and UIEvent records."""

    def __init__(self, gateway: PersistenceGateway) -> None:
        """Initialize repository."""
        super().__init__(AnalyticsEvent, gateway)

    @property
    def key_column(self) -> Any:
        return AnalyticsEvent.id

    def memory_map(self, store: InMemoryStore) -> dict[str, EventRecord]:
        return store.events

    def to_record(self, row: AnalyticsEvent) -> EventRecord:
        timestamp = ensure_utc(row.timestamp)
        if row.tx_hash is not None:
            return ContractEvent(
                id=row.id,
                contract_address=row.contract_address,
                event_name=row.event_name,
                tx_hash=row.tx_hash,
                block_number=row.block_number,
                log_index=row.log_index,
                chain_id=row.chain_id,
                event_args=row.event_args or {},
                wallet_address=row.wallet_address,
                gas_used=row.gas_used,
                gas_price=row.gas_price,
                metadata=row.extra_data,
                timestamp=timestamp,
                event_type=AnalyticsEventType(row.event_type),
            )
        return UIEvent(
            id=row.id,
            event_type=AnalyticsEventType(row.event_type),
            wallet_address=row.wallet_address,
            session_id=row.session_id,
            url=row.url,
            referrer=row.referrer,
            user_agent=row.user_agent,
            ip_address=row.ip_address,
            element=row.element,
            action=row.action,
            value=row.value,
            chain_id=row.chain_id,
            metadata=row.extra_data,
            timestamp=timestamp,
        )

    @staticmethod
    def _to_row_values(event: EventRecord) -> dict[str, Any]:
        values: dict[str, Any] = {
            "id": event.id,
            "event_type": str(event.event_type),
            "timestamp": event.timestamp,
            "wallet_address": event.wallet_address,
            "chain_id": event.chain_id,
            "extra_data": event.metadata,
        }
        if isinstance(event, ContractEvent):
            values.update(
                contract_address=event.contract_address,
                event_name=event.event_name,
                tx_hash=event.tx_hash,
                block_number=event.block_number,
                log_index=event.log_index,
                gas_used=event.gas_used,
                gas_price=event.gas_price,
                event_args=event.event_args,
            )
        else:
            values.update(
                session_id=event.session_id,
                url=event.url,
                referrer=event.referrer,
                user_agent=event.user_agent,
                ip_address=event.ip_address,
                element=event.element,
                action=event.action,
                value=event.value,
            )
        return values

    async def store(self, event: EventRecord) -> str:
        """
        Append event.

        Args:
            event: Contract or UI event (id generated if absent)

        Returns:
            Event id
        """
        event = replace(
            event,
            id=event.id or str(uuid4()),
            timestamp=ensure_utc(event.timestamp),
            wallet_address=normalize_optional_address(event.wallet_address),
        )
        if isinstance(event, ContractEvent):
            event = replace(event, contract_address=event.contract_address.lower())

        async def durable(session: AsyncSession) -> str:
            stmt = (
                dialect_insert(session, AnalyticsEvent)
                .values(**self._to_row_values(event))
                .on_conflict_do_nothing(index_elements=["id"])
            )
            await session.execute(stmt)
            return event.id

        def fallback(store: InMemoryStore) -> str:
            # Stored events are immutable: a repeated id keeps the first copy
            if event.id not in store.events:
                store.events[event.id] = self._copy(event)
            return event.id

        return await self.gateway.execute(durable, fallback, "EventRepository.store")

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    @staticmethod
    def _filter_clauses(flt: EventFilter) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = []
        if flt.start_date is not None:
            clauses.append(AnalyticsEvent.timestamp >= ensure_utc(flt.start_date))
        if flt.end_date is not None:
            clauses.append(AnalyticsEvent.timestamp <= ensure_utc(flt.end_date))
        if flt.wallet_address:
            clauses.append(AnalyticsEvent.wallet_address == flt.wallet_address.lower())
        if flt.contract_address:
            clauses.append(AnalyticsEvent.contract_address == flt.contract_address.lower())
        if flt.event_type:
            clauses.append(AnalyticsEvent.event_type == str(flt.event_type))
        if flt.chain_id is not None:
            clauses.append(AnalyticsEvent.chain_id == flt.chain_id)
        return clauses

    @staticmethod
    def _filter_predicate(flt: EventFilter) -> Any:
        start = ensure_utc(flt.start_date)
        end = ensure_utc(flt.end_date)
        wallet = flt.wallet_address.lower() if flt.wallet_address else None
        contract = flt.contract_address.lower() if flt.contract_address else None
        event_type = str(flt.event_type) if flt.event_type else None

        def predicate(event: EventRecord) -> bool:
            if start is not None and event.timestamp < start:
                return False
            if end is not None and event.timestamp > end:
                return False
            if wallet and event.wallet_address != wallet:
                return False
            if contract and getattr(event, "contract_address", None) != contract:
                return False
            if event_type and str(event.event_type) != event_type:
                return False
            if flt.chain_id is not None and event.chain_id != flt.chain_id:
                return False
            return True

        return predicate

    async def query(
        self,
        flt: EventFilter | None = None,
        pagination: Pagination | None = None,
        sort: EventSort | None = None,
    ) -> QueryResult:
        """
        Filtered, paginated event query.

        Ordering: by ``sort`` (nulls last, ties in insertion order) when
        given, else insertion order.

        Args:
            flt: Filter (time bounds inclusive)
            pagination: Limit/offset
            sort: Sort field and direction

        Returns:
            QueryResult page

        Raises:
            ValidationError: On unknown sort field/direction or bad pagination
        """
        flt = flt or EventFilter()
        pagination = pagination or Pagination()
        if pagination.limit <= 0 or pagination.offset < 0:
            raise ValidationError(
                f"Invalid pagination: limit={pagination.limit}, offset={pagination.offset}"
            )
        if sort is not None:
            if sort.sort_by not in SORTABLE_FIELDS:
                raise ValidationError(f"Cannot sort events by {sort.sort_by!r}")
            if sort.direction not in ("asc", "desc"):
                raise ValidationError(f"Invalid sort direction {sort.direction!r}")

        clauses = self._filter_clauses(flt)
        predicate = self._filter_predicate(flt)

        async def durable(session: AsyncSession) -> tuple[list[EventRecord], int]:
            total = (
                await session.execute(
                    select(func.count()).select_from(AnalyticsEvent).where(*clauses)
                )
            ).scalar_one()

            stmt = select(AnalyticsEvent).where(*clauses)
            if sort is not None:
                column = SORTABLE_FIELDS[sort.sort_by]
                ordered = column.desc() if sort.direction == "desc" else column.asc()
                stmt = stmt.order_by(ordered.nulls_last(), AnalyticsEvent.seq.asc())
            else:
                stmt = stmt.order_by(AnalyticsEvent.seq.asc())
            stmt = stmt.offset(pagination.offset).limit(pagination.limit)

            result = await session.execute(stmt)
            return [self.to_record(row) for row in result.scalars().all()], total

        def fallback(store: InMemoryStore) -> tuple[list[EventRecord], int]:
            matched = [e for e in store.events.values() if predicate(e)]
            if sort is not None:
                present = [e for e in matched if getattr(e, sort.sort_by, None) is not None]
                missing = [e for e in matched if getattr(e, sort.sort_by, None) is None]
                present.sort(
                    key=lambda e: getattr(e, sort.sort_by),
                    reverse=sort.direction == "desc",
                )
                matched = present + missing
            page = matched[pagination.offset:pagination.offset + pagination.limit]
            return [self._copy(e) for e in page], len(matched)

        data, total = await self.gateway.execute(durable, fallback, "EventRepository.query")
        return QueryResult(
            data=data,
            total=total,
            page=pagination.offset // pagination.limit + 1,
            limit=pagination.limit,
            has_more=pagination.offset + len(data) < total,
        )

    # ------------------------------------------------------------------
    # Aggregates over a half-open window [start, end)
    # ------------------------------------------------------------------

    @staticmethod
    def _window_clauses(
        start: datetime | None, end: datetime | None, inclusive_end: bool = False
    ) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = []
        if start is not None:
            clauses.append(AnalyticsEvent.timestamp >= start)
        if end is not None:
            if inclusive_end:
                clauses.append(AnalyticsEvent.timestamp <= end)
            else:
                clauses.append(AnalyticsEvent.timestamp < end)
        return clauses

    async def count_by_type(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        inclusive_end: bool = False,
    ) -> dict[str, int]:
        """
        Count events per event type in [start, end).

        Args:
            start: Window start (inclusive)
            end: Window end (exclusive unless inclusive_end)
            inclusive_end: Treat end as inclusive

        Returns:
            Map of event type -> count
        """
        start, end = ensure_utc(start), ensure_utc(end)

        async def durable(session: AsyncSession) -> dict[str, int]:
            stmt = (
                select(AnalyticsEvent.event_type, func.count())
                .where(*self._window_clauses(start, end, inclusive_end))
                .group_by(AnalyticsEvent.event_type)
            )
            result = await session.execute(stmt)
            return {event_type: count for event_type, count in result.all()}

        def fallback(store: InMemoryStore) -> dict[str, int]:
            counts = Counter(
                str(e.event_type)
                for e in store.events.values()
                if _in_window(e.timestamp, start, end, inclusive_end)
            )
            return dict(counts)

        return await self.gateway.execute(durable, fallback, "EventRepository.count_by_type")

    async def count_by_contract(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> dict[str, int]:
        """
        Count contract events per contract address in [start, end).

        Returns:
            Map of contract address -> count
        """
        start, end = ensure_utc(start), ensure_utc(end)

        async def durable(session: AsyncSession) -> dict[str, int]:
            stmt = (
                select(AnalyticsEvent.contract_address, func.count())
                .where(
                    AnalyticsEvent.contract_address.is_not(None),
                    *self._window_clauses(start, end),
                )
                .group_by(AnalyticsEvent.contract_address)
            )
            result = await session.execute(stmt)
            return {address: count for address, count in result.all()}

        def fallback(store: InMemoryStore) -> dict[str, int]:
            counts = Counter(
                e.contract_address
                for e in store.events.values()
                if isinstance(e, ContractEvent) and _in_window(e.timestamp, start, end)
            )
            return dict(counts)

        return await self.gateway.execute(
            durable, fallback, "EventRepository.count_by_contract"
        )

    async def distinct_wallets(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> set[str]:
        """Distinct wallet addresses attached to any event in [start, end)."""
        start, end = ensure_utc(start), ensure_utc(end)

        async def durable(session: AsyncSession) -> set[str]:
            stmt = (
                select(AnalyticsEvent.wallet_address)
                .where(
                    AnalyticsEvent.wallet_address.is_not(None),
                    *self._window_clauses(start, end),
                )
                .distinct()
            )
            result = await session.execute(stmt)
            return set(result.scalars().all())

        def fallback(store: InMemoryStore) -> set[str]:
            return {
                e.wallet_address
                for e in store.events.values()
                if e.wallet_address and _in_window(e.timestamp, start, end)
            }

        return await self.gateway.execute(
            durable, fallback, "EventRepository.distinct_wallets"
        )

    async def sum_gas_used(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> BigUInt:
        """Big-integer sum of gas_used over events in [start, end)."""
        start, end = ensure_utc(start), ensure_utc(end)

        async def durable(session: AsyncSession) -> BigUInt:
            # Summed in Python: the column holds decimal strings
            stmt = select(AnalyticsEvent.gas_used).where(
                AnalyticsEvent.gas_used.is_not(None),
                *self._window_clauses(start, end),
            )
            result = await session.execute(stmt)
            return BigUInt.sum(result.scalars().all())

        def fallback(store: InMemoryStore) -> BigUInt:
            return BigUInt.sum(
                e.gas_used
                for e in store.events.values()
                if isinstance(e, ContractEvent) and _in_window(e.timestamp, start, end)
            )

        return await self.gateway.execute(durable, fallback, "EventRepository.sum_gas_used")
