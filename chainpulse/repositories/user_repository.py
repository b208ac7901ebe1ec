"""
User analytics repository.

Data access layer for per-wallet counters.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chainpulse.models.user import AnalyticsUserModel
from chainpulse.repositories.base import BaseRepository, dialect_insert
from chainpulse.schemas.records import AnalyticsUser
from chainpulse.storage import InMemoryStore, PersistenceGateway
from chainpulse.utils.big_uint import ZERO, BigUInt
from chainpulse.utils.datetime_utils import ensure_utc


class UserRepository(BaseRepository[AnalyticsUserModel, AnalyticsUser]):
    """Repository for AnalyticsUser records."""

    def __init__(self, gateway: PersistenceGateway) -> None:
        """Initialize repository."""
        super().__init__(AnalyticsUserModel, gateway)

    @property
    def key_column(self) -> Any:
        return AnalyticsUserModel.wallet_address

    def memory_map(self, store: InMemoryStore) -> dict[str, AnalyticsUser]:
        return store.users

    def to_record(self, row: AnalyticsUserModel) -> AnalyticsUser:
        return AnalyticsUser(
            wallet_address=row.wallet_address,
            first_seen=ensure_utc(row.first_seen),
            last_seen=ensure_utc(row.last_seen),
            total_sessions=row.total_sessions,
            total_interactions=row.total_interactions,
            total_transactions=row.total_transactions,
            total_gas_spent=row.total_gas_spent or ZERO,
            tags=list(row.tags) if row.tags is not None else None,
            metadata=row.extra_data,
        )

    async def get_or_create(self, record: AnalyticsUser) -> AnalyticsUser:
        """
        Return the stored user, inserting ``record`` if absent.

        Args:
            record: Zeroed record to insert on first sighting

        Returns:
            Stored record
        """
        async def durable(session: AsyncSession) -> AnalyticsUser:
            stmt = (
                dialect_insert(session, AnalyticsUserModel)
                .values(
                    wallet_address=record.wallet_address,
                    first_seen=record.first_seen,
                    last_seen=record.last_seen,
                    total_sessions=record.total_sessions,
                    total_interactions=record.total_interactions,
                    total_transactions=record.total_transactions,
                    total_gas_spent=record.total_gas_spent,
                    tags=record.tags,
                    extra_data=record.metadata,
                )
                .on_conflict_do_nothing(index_elements=["wallet_address"])
            )
            await session.execute(stmt)
            row = await self._select_row(session, record.wallet_address)
            return self.to_record(row)

        def fallback(store: InMemoryStore) -> AnalyticsUser:
            stored = store.users.setdefault(record.wallet_address, self._copy(record))
            return self._copy(stored)

        return await self.gateway.execute(durable, fallback, "UserRepository.get_or_create")

    async def apply_stats(
        self,
        wallet_address: str,
        now: datetime,
        new_session: bool = False,
        new_interaction: bool = False,
        new_transaction: bool = False,
        gas_spent: BigUInt | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AnalyticsUser | None:
        """
        Apply counter increments to a user.

        Returns:
            Updated record, or None if the user does not exist
        """
        async def durable(session: AsyncSession) -> AnalyticsUser | None:
            row = await self._select_row(session, wallet_address, for_update=True)
            if row is None:
                return None

            values: dict[str, Any] = {"last_seen": now}
            if new_session:
                values["total_sessions"] = AnalyticsUserModel.total_sessions + 1
            if new_interaction:
                values["total_interactions"] = AnalyticsUserModel.total_interactions + 1
            if new_transaction:
                values["total_transactions"] = AnalyticsUserModel.total_transactions + 1
            if gas_spent:
                values["total_gas_spent"] = (row.total_gas_spent or ZERO) + gas_spent
            if metadata:
                values["extra_data"] = {**(row.extra_data or {}), **metadata}

            await session.execute(
                update(AnalyticsUserModel)
                .where(AnalyticsUserModel.wallet_address == wallet_address)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.refresh(row)
            return self.to_record(row)

        def fallback(store: InMemoryStore) -> AnalyticsUser | None:
            record = store.users.get(wallet_address)
            if record is None:
                return None

            record.last_seen = now
            if new_session:
                record.total_sessions += 1
            if new_interaction:
                record.total_interactions += 1
            if new_transaction:
                record.total_transactions += 1
            if gas_spent:
                record.total_gas_spent = record.total_gas_spent + gas_spent
            if metadata:
                record.metadata = {**(record.metadata or {}), **metadata}
            return self._copy(record)

        return await self.gateway.execute(durable, fallback, "UserRepository.apply_stats")

    async def find_last_seen_since(self, since: datetime) -> list[AnalyticsUser]:
        """Users with last_seen >= since, most recent first."""
        return await self.find_where(
            [AnalyticsUserModel.last_seen >= since],
            lambda u: u.last_seen >= since,
            order_by=[AnalyticsUserModel.last_seen.desc()],
            sort_key=lambda u: u.last_seen,
            reverse=True,
        )

    async def find_first_seen_since(self, since: datetime) -> list[AnalyticsUser]:
        """Users with first_seen >= since, most recent first."""
        return await self.find_where(
            [AnalyticsUserModel.first_seen >= since],
            lambda u: u.first_seen >= since,
            order_by=[AnalyticsUserModel.first_seen.desc()],
            sort_key=lambda u: u.first_seen,
            reverse=True,
        )

    async def find_by_last_seen(self) -> list[AnalyticsUser]:
        """All users, most recently seen first."""
        return await self.find_where(
            [],
            lambda u: True,
            order_by=[AnalyticsUserModel.last_seen.desc(), AnalyticsUserModel.wallet_address],
            sort_key=lambda u: u.last_seen,
            reverse=True,
        )

    async def count_first_seen_between(self, start: datetime, end: datetime) -> int:
        """Number of users first seen in [start, end)."""
        async def durable(session: AsyncSession) -> int:
            stmt = (
                select(func.count())
                .select_from(AnalyticsUserModel)
                .where(AnalyticsUserModel.first_seen >= start, AnalyticsUserModel.first_seen < end)
            )
            return (await session.execute(stmt)).scalar_one()

        def fallback(store: InMemoryStore) -> int:
            return sum(1 for u in store.users.values() if start <= u.first_seen < end)

        return await self.gateway.execute(
            durable, fallback, "UserRepository.count_first_seen_between"
        )
