"""
Session repository.

Data access layer for browsing sessions.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from chainpulse.models.session import AnalyticsSessionModel
from chainpulse.repositories.base import BaseRepository
from chainpulse.schemas.records import AnalyticsSession
from chainpulse.storage import InMemoryStore, PersistenceGateway
from chainpulse.utils.datetime_utils import ensure_utc, to_millis


class SessionRepository(BaseRepository[AnalyticsSessionModel, AnalyticsSession]):
    """Repository for AnalyticsSession records."""

    def __init__(self, gateway: PersistenceGateway) -> None:
        """Initialize repository."""
        super().__init__(AnalyticsSessionModel, gateway)

    @property
    def key_column(self) -> Any:
        return AnalyticsSessionModel.id

    def memory_map(self, store: InMemoryStore) -> dict[str, AnalyticsSession]:
        return store.sessions

    def to_record(self, row: AnalyticsSessionModel) -> AnalyticsSession:
        return AnalyticsSession(
            id=row.id,
            wallet_address=row.wallet_address,
            start_time=ensure_utc(row.start_time),
            end_time=ensure_utc(row.end_time),
            duration=row.duration,
            is_active=row.is_active,
            entry_page=row.entry_page,
            exit_page=row.exit_page,
            page_views=row.page_views,
            interactions=row.interactions,
            chain_id=row.chain_id,
            user_agent=row.user_agent,
            ip_address=row.ip_address,
            referrer=row.referrer,
            metadata=row.extra_data,
        )

    async def create(self, record: AnalyticsSession) -> AnalyticsSession:
        """
        Insert new session.

        Args:
            record: Session record with a fresh id

        Returns:
            Stored record
        """
        async def durable(session: AsyncSession) -> AnalyticsSession:
            row = AnalyticsSessionModel(
                id=record.id,
                wallet_address=record.wallet_address,
                start_time=record.start_time,
                is_active=record.is_active,
                entry_page=record.entry_page,
                exit_page=record.exit_page,
                page_views=record.page_views,
                interactions=record.interactions,
                chain_id=record.chain_id,
                user_agent=record.user_agent,
                ip_address=record.ip_address,
                referrer=record.referrer,
                extra_data=record.metadata,
            )
            session.add(row)
            await session.flush()
            return self.to_record(row)

        def fallback(store: InMemoryStore) -> AnalyticsSession:
            store.sessions[record.id] = self._copy(record)
            return self._copy(record)

        return await self.gateway.execute(durable, fallback, "SessionRepository.create")

    async def end(
        self, session_id: str, now: datetime, exit_page: str | None = None
    ) -> AnalyticsSession | None:
        """
        Close an active session; a closed session is returned unchanged.

        Returns:
            Session record, or None if not found
        """
        async def durable(session: AsyncSession) -> AnalyticsSession | None:
            row = await self._select_row(session, session_id, for_update=True)
            if row is None:
                return None
            if row.is_active:
                row.end_time = now
                row.duration = to_millis(now - ensure_utc(row.start_time))
                row.is_active = False
                if exit_page is not None:
                    row.exit_page = exit_page
                await session.flush()
            return self.to_record(row)

        def fallback(store: InMemoryStore) -> AnalyticsSession | None:
            record = store.sessions.get(session_id)
            if record is None:
                return None
            if record.is_active:
                record.end_time = now
                record.duration = to_millis(now - record.start_time)
                record.is_active = False
                if exit_page is not None:
                    record.exit_page = exit_page
            return self._copy(record)

        return await self.gateway.execute(durable, fallback, "SessionRepository.end")

    async def apply_stats(
        self,
        session_id: str,
        page_view: bool = False,
        interaction: bool = False,
        current_page: str | None = None,
    ) -> AnalyticsSession | None:
        """
        Increment counters of an active session; inactive sessions are unchanged.

        Returns:
            Session record, or None if not found
        """
        async def durable(session: AsyncSession) -> AnalyticsSession | None:
            row = await self._select_row(session, session_id, for_update=True)
            if row is None:
                return None
            if row.is_active:
                if page_view:
                    row.page_views = AnalyticsSessionModel.page_views + 1
                if interaction:
                    row.interactions = AnalyticsSessionModel.interactions + 1
                if current_page is not None:
                    row.exit_page = current_page
                await session.flush()
                await session.refresh(row)
            return self.to_record(row)

        def fallback(store: InMemoryStore) -> AnalyticsSession | None:
            record = store.sessions.get(session_id)
            if record is None:
                return None
            if record.is_active:
                if page_view:
                    record.page_views += 1
                if interaction:
                    record.interactions += 1
                if current_page is not None:
                    record.exit_page = current_page
            return self._copy(record)

        return await self.gateway.execute(durable, fallback, "SessionRepository.apply_stats")

    async def find_active(self) -> list[AnalyticsSession]:
        """Active sessions, oldest first."""
        return await self.find_where(
            [AnalyticsSessionModel.is_active.is_(True)],
            lambda s: s.is_active,
            order_by=[AnalyticsSessionModel.start_time.asc(), AnalyticsSessionModel.id.asc()],
            sort_key=lambda s: (s.start_time, s.id),
        )

    async def find_by_wallet(self, wallet_address: str) -> list[AnalyticsSession]:
        """Sessions of a wallet, most recent start first."""
        return await self.find_where(
            [AnalyticsSessionModel.wallet_address == wallet_address],
            lambda s: s.wallet_address == wallet_address,
            order_by=[AnalyticsSessionModel.start_time.desc()],
            sort_key=lambda s: s.start_time,
            reverse=True,
        )

    async def find_started_between(
        self, start: datetime, end: datetime | None = None
    ) -> list[AnalyticsSession]:
        """Sessions with start_time in [start, end), oldest first."""
        clauses = [AnalyticsSessionModel.start_time >= start]
        if end is not None:
            clauses.append(AnalyticsSessionModel.start_time < end)
        return await self.find_where(
            clauses,
            lambda s: s.start_time >= start and (end is None or s.start_time < end),
            order_by=[AnalyticsSessionModel.start_time.asc(), AnalyticsSessionModel.id.asc()],
            sort_key=lambda s: (s.start_time, s.id),
        )
