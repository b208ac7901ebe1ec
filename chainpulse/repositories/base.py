"""
Base repository.

Generic dual-backend operations for all analytics repositories. Each
operation is expressed twice: as SQL against an AsyncSession and as a
synchronous function over the InMemoryStore, and routed through the
PersistenceGateway.
"""

import copy
from collections.abc import Callable, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from chainpulse.models.base import Base
from chainpulse.storage import InMemoryStore, PersistenceGateway


# Generic type for model
ModelType = TypeVar("ModelType", bound=Base)
# Generic type for the record returned to callers
RecordT = TypeVar("RecordT")


def dialect_insert(session: AsyncSession, model: type[Base]) -> Any:
    """
    INSERT construct supporting ON CONFLICT for the session's dialect.

    Args:
        session: Async database session
        model: Target model

    Returns:
        postgresql or sqlite Insert
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"ON CONFLICT not supported for dialect {dialect}")


class BaseRepository(Generic[ModelType, RecordT]):
    """
    Base repository with generic dual-backend operations.

    Type Parameters:
        ModelType: SQLAlchemy model class
        RecordT: Dataclass record returned to callers

    Subclasses provide the key column, the in-memory map and the row to
    record mapping.

    Example:
        class UserRepository(BaseRepository[AnalyticsUserModel, AnalyticsUser]):
            def __init__(self, gateway: PersistenceGateway):
                super().__init__(AnalyticsUserModel, gateway)
    """

    def __init__(self, model: type[ModelType], gateway: PersistenceGateway) -> None:
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            gateway: Persistence gateway shared by all repositories
        """
        self.model = model
        self.gateway = gateway

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @property
    def key_column(self) -> InstrumentedAttribute:
        """Column identifying one entity."""
        raise NotImplementedError

    def memory_map(self, store: InMemoryStore) -> dict[Any, RecordT]:
        """In-memory map holding this entity type."""
        raise NotImplementedError

    def to_record(self, row: ModelType) -> RecordT:
        """Map ORM row to record."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Generic operations
    # ------------------------------------------------------------------

    @staticmethod
    def _copy(record: RecordT) -> RecordT:
        # Callers never receive the stored in-memory object
        return copy.deepcopy(record)

    async def _select_row(
        self, session: AsyncSession, key: Any, for_update: bool = False
    ) -> ModelType | None:
        stmt = select(self.model).where(self.key_column == key)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_key(self, key: Any) -> RecordT | None:
        """
        Get entity by key.

        Args:
            key: Entity key

        Returns:
            Record or None if not found
        """
        async def durable(session: AsyncSession) -> RecordT | None:
            row = await self._select_row(session, key)
            return self.to_record(row) if row is not None else None

        def fallback(store: InMemoryStore) -> RecordT | None:
            record = self.memory_map(store).get(key)
            return self._copy(record) if record is not None else None

        return await self.gateway.execute(
            durable, fallback, f"{self.__class__.__name__}.get_by_key"
        )

    async def delete_by_key(self, key: Any) -> bool:
        """
        Delete entity by key.

        Args:
            key: Entity key

        Returns:
            True if deleted, False if not found
        """
        async def durable(session: AsyncSession) -> bool:
            result = await session.execute(delete(self.model).where(self.key_column == key))
            return result.rowcount > 0

        def fallback(store: InMemoryStore) -> bool:
            return self.memory_map(store).pop(key, None) is not None

        return await self.gateway.execute(
            durable, fallback, f"{self.__class__.__name__}.delete_by_key"
        )

    async def count(self) -> int:
        """
        Count all entities.

        Returns:
            Number of entities
        """
        async def durable(session: AsyncSession) -> int:
            result = await session.execute(select(func.count()).select_from(self.model))
            return result.scalar_one()

        def fallback(store: InMemoryStore) -> int:
            return len(self.memory_map(store))

        return await self.gateway.execute(durable, fallback, f"{self.__class__.__name__}.count")

    async def find_where(
        self,
        clauses: Sequence[ColumnElement[bool]],
        predicate: Callable[[RecordT], bool],
        order_by: Sequence[Any] = (),
        sort_key: Callable[[RecordT], Any] | None = None,
        reverse: bool = False,
        limit: int | None = None,
    ) -> list[RecordT]:
        """
        Find entities matching a filter expressed for both backends.

        Args:
            clauses: SQL WHERE clauses
            predicate: Equivalent in-memory filter
            order_by: SQL ORDER BY expressions
            sort_key: Equivalent in-memory sort key
            reverse: Descending in-memory sort
            limit: Max number of results

        Returns:
            List of matching records
        """
        async def durable(session: AsyncSession) -> list[RecordT]:
            stmt = select(self.model).where(*clauses)
            if order_by:
                stmt = stmt.order_by(*order_by)
            if limit:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [self.to_record(row) for row in result.scalars().all()]

        def fallback(store: InMemoryStore) -> list[RecordT]:
            records = [r for r in self.memory_map(store).values() if predicate(r)]
            if sort_key is not None:
                records.sort(key=sort_key, reverse=reverse)
            if limit:
                records = records[:limit]
            return [self._copy(r) for r in records]

        return await self.gateway.execute(
            durable, fallback, f"{self.__class__.__name__}.find_where"
        )

    async def find_all(self) -> list[RecordT]:
        """
        Find all entities.

        Returns:
            List of all records
        """
        return await self.find_where([], lambda record: True)
