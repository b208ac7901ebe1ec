"""
Contract analytics repository.

Data access layer for per-contract counters and the (contract, wallet)
junction backing the unique-user figure.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chainpulse.models.contract import ContractAnalyticsModel, ContractWallet
from chainpulse.repositories.base import BaseRepository, dialect_insert
from chainpulse.schemas.records import ContractAnalytics
from chainpulse.storage import InMemoryStore, PersistenceGateway
from chainpulse.utils.big_uint import ZERO, BigUInt
from chainpulse.utils.datetime_utils import ensure_utc


class ContractRepository(BaseRepository[ContractAnalyticsModel, ContractAnalytics]):
    """Repository for ContractAnalytics records."""

    def __init__(self, gateway: PersistenceGateway) -> None:
        """Initialize repository."""
        super().__init__(ContractAnalyticsModel, gateway)

    @property
    def key_column(self) -> Any:
        return ContractAnalyticsModel.address

    def memory_map(self, store: InMemoryStore) -> dict[str, ContractAnalytics]:
        return store.contracts

    def to_record(self, row: ContractAnalyticsModel) -> ContractAnalytics:
        return ContractAnalytics(
            address=row.address,
            name=row.name,
            type=row.type,
            deployed_at=ensure_utc(row.deployed_at),
            deployer_address=row.deployer_address,
            total_interactions=row.total_interactions,
            unique_users=row.unique_users,
            last_interaction=ensure_utc(row.last_interaction),
            gas_used=row.gas_used or ZERO,
            events=dict(row.events or {}),
            metadata=row.extra_data,
        )

    async def get_or_create(self, record: ContractAnalytics) -> ContractAnalytics:
        """
        Return the stored contract, inserting ``record`` if absent.

        Args:
            record: Zeroed record to insert on first sighting

        Returns:
            Stored record
        """
        async def durable(session: AsyncSession) -> ContractAnalytics:
            stmt = (
                dialect_insert(session, ContractAnalyticsModel)
                .values(
                    address=record.address,
                    name=record.name,
                    type=record.type,
                    deployed_at=record.deployed_at,
                    deployer_address=record.deployer_address,
                    total_interactions=record.total_interactions,
                    unique_users=record.unique_users,
                    last_interaction=record.last_interaction,
                    gas_used=record.gas_used,
                    events=record.events,
                    extra_data=record.metadata,
                )
                .on_conflict_do_nothing(index_elements=["address"])
            )
            await session.execute(stmt)
            row = await self._select_row(session, record.address)
            return self.to_record(row)

        def fallback(store: InMemoryStore) -> ContractAnalytics:
            stored = store.contracts.setdefault(record.address, self._copy(record))
            store.contract_wallets.setdefault(record.address, set())
            return self._copy(stored)

        return await self.gateway.execute(durable, fallback, "ContractRepository.get_or_create")

    async def record_interaction(
        self,
        address: str,
        event_name: str,
        wallet_address: str | None,
        gas_used: BigUInt | None,
        metadata: dict[str, Any] | None,
        now: datetime,
    ) -> ContractAnalytics | None:
        """
        Apply one interaction to a contract's counters.

        Counter increment is one UPDATE statement; unique users is the
        junction row count after an INSERT ... ON CONFLICT DO NOTHING.

        Returns:
            Updated record, or None if the contract does not exist
        """
        async def durable(session: AsyncSession) -> ContractAnalytics | None:
            row = await self._select_row(session, address, for_update=True)
            if row is None:
                return None

            if wallet_address:
                await session.execute(
                    dialect_insert(session, ContractWallet)
                    .values(contract_address=address, wallet_address=wallet_address, first_seen=now)
                    .on_conflict_do_nothing(index_elements=["contract_address", "wallet_address"])
                )

            unique_users = (
                select(func.count())
                .select_from(ContractWallet)
                .where(ContractWallet.contract_address == address)
                .scalar_subquery()
            )
            events = dict(row.events or {})
            events[event_name] = events.get(event_name, 0) + 1

            values: dict[str, Any] = {
                "total_interactions": ContractAnalyticsModel.total_interactions + 1,
                "unique_users": unique_users,
                "last_interaction": now,
                "events": events,
            }
            if gas_used:
                values["gas_used"] = (row.gas_used or ZERO) + gas_used
            if metadata:
                values["extra_data"] = {**(row.extra_data or {}), **metadata}

            await session.execute(
                update(ContractAnalyticsModel)
                .where(ContractAnalyticsModel.address == address)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.refresh(row)
            return self.to_record(row)

        def fallback(store: InMemoryStore) -> ContractAnalytics | None:
            record = store.contracts.get(address)
            if record is None:
                return None

            record.total_interactions += 1
            if wallet_address:
                wallets = store.contract_wallets.setdefault(address, set())
                wallets.add(wallet_address)
                record.unique_users = len(wallets)
            record.last_interaction = now
            if gas_used:
                record.gas_used = record.gas_used + gas_used
            record.events[event_name] = record.events.get(event_name, 0) + 1
            if metadata:
                record.metadata = {**(record.metadata or {}), **metadata}
            return self._copy(record)

        return await self.gateway.execute(
            durable, fallback, "ContractRepository.record_interaction"
        )

    async def find_by_interactions(self, limit: int | None = None) -> list[ContractAnalytics]:
        """
        Contracts ordered by total interactions desc, then address.

        Args:
            limit: Max number of results

        Returns:
            List of records
        """
        return await self.find_where(
            [],
            lambda record: True,
            order_by=[
                ContractAnalyticsModel.total_interactions.desc(),
                ContractAnalyticsModel.address.asc(),
            ],
            sort_key=lambda c: (-c.total_interactions, c.address),
            limit=limit,
        )
