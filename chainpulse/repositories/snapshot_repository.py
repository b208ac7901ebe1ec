"""
Snapshot repository.

Data access layer for daily snapshots.
"""

from dataclasses import asdict
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from chainpulse.models.snapshot import DailySnapshotModel
from chainpulse.repositories.base import BaseRepository, dialect_insert
from chainpulse.schemas.records import DailySnapshot, TopContract, TopEvent
from chainpulse.storage import InMemoryStore, PersistenceGateway
from chainpulse.utils.big_uint import ZERO


class SnapshotRepository(BaseRepository[DailySnapshotModel, DailySnapshot]):
    """Repository for DailySnapshot records, keyed by date."""

    def __init__(self, gateway: PersistenceGateway) -> None:
        """Initialize repository."""
        super().__init__(DailySnapshotModel, gateway)

    @property
    def key_column(self) -> Any:
        return DailySnapshotModel.snapshot_date

    def memory_map(self, store: InMemoryStore) -> dict[date, DailySnapshot]:
        return store.snapshots

    def to_record(self, row: DailySnapshotModel) -> DailySnapshot:
        return DailySnapshot(
            date=row.snapshot_date,
            new_users=row.new_users,
            active_users=row.active_users,
            total_sessions=row.total_sessions,
            average_session_duration=row.average_session_duration,
            total_transactions=row.total_transactions,
            total_gas_used=row.total_gas_used or ZERO,
            top_contracts=[TopContract(**item) for item in row.top_contracts or []],
            top_events=[TopEvent(**item) for item in row.top_events or []],
        )

    async def upsert(self, snapshot: DailySnapshot) -> DailySnapshot:
        """
        Insert or fully overwrite the snapshot for its date.

        Args:
            snapshot: Computed snapshot

        Returns:
            Stored record
        """
        values = {
            "new_users": snapshot.new_users,
            "active_users": snapshot.active_users,
            "total_sessions": snapshot.total_sessions,
            "average_session_duration": snapshot.average_session_duration,
            "total_transactions": snapshot.total_transactions,
            "total_gas_used": snapshot.total_gas_used,
            "top_contracts": [asdict(c) for c in snapshot.top_contracts],
            "top_events": [asdict(e) for e in snapshot.top_events],
        }

        async def durable(session: AsyncSession) -> DailySnapshot:
            stmt = dialect_insert(session, DailySnapshotModel).values(
                snapshot_date=snapshot.date, **values
            )
            stmt = stmt.on_conflict_do_update(index_elements=["date"], set_=values)
            await session.execute(stmt)
            return self._copy(snapshot)

        def fallback(store: InMemoryStore) -> DailySnapshot:
            store.snapshots[snapshot.date] = self._copy(snapshot)
            return self._copy(snapshot)

        return await self.gateway.execute(durable, fallback, "SnapshotRepository.upsert")

    async def find_between(self, start: date, end: date) -> list[DailySnapshot]:
        """Snapshots with date in [start, end] inclusive, ascending."""
        return await self.find_where(
            [DailySnapshotModel.snapshot_date >= start, DailySnapshotModel.snapshot_date <= end],
            lambda s: start <= s.date <= end,
            order_by=[DailySnapshotModel.snapshot_date.asc()],
            sort_key=lambda s: s.date,
        )
