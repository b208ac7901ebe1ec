"""
Session tracker.

Creates, updates and closes browsing sessions.
"""

from uuid import uuid4

from loguru import logger

from chainpulse.repositories.session_repository import SessionRepository
from chainpulse.schemas.records import AnalyticsSession
from chainpulse.utils.datetime_utils import utc_now
from chainpulse.utils.keyed_lock import KeyedLock
from chainpulse.utils.security import normalize_address, normalize_optional_address


class SessionTracker:
    """Browsing session lifecycle."""

    def __init__(self, repository: SessionRepository, locks: KeyedLock | None = None) -> None:
        """
        Initialize tracker.

        Args:
            repository: Session repository
            locks: Shared per-key lock registry
        """
        self.repository = repository
        self.locks = locks or KeyedLock()

    async def create_session(
        self,
        wallet_address: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
        referrer: str | None = None,
        entry_page: str | None = None,
        chain_id: int | None = None,
    ) -> AnalyticsSession:
        """
        Start a new active session with one page view.

        Returns:
            Created session
        """
        record = AnalyticsSession(
            id=str(uuid4()),
            wallet_address=normalize_optional_address(wallet_address),
            start_time=utc_now(),
            is_active=True,
            entry_page=entry_page,
            page_views=1,
            interactions=0,
            chain_id=chain_id,
            user_agent=user_agent,
            ip_address=ip_address,
            referrer=referrer,
        )
        session = await self.repository.create(record)
        logger.debug(f"[Sessions] Session started: {session.id}")
        return session

    async def end_session(
        self, session_id: str, exit_page: str | None = None
    ) -> AnalyticsSession | None:
        """
        End a session. Ending an already-ended session returns it unchanged.

        Args:
            session_id: Session id
            exit_page: Last page; keeps the tracked page when None

        Returns:
            Session, or None if not found
        """
        async with self.locks.hold(f"session:{session_id}"):
            session = await self.repository.end(session_id, utc_now(), exit_page)
        if session is None:
            logger.warning(f"[Sessions] Session not found: {session_id}")
        return session

    async def update_session_stats(
        self,
        session_id: str,
        page_view: bool = False,
        interaction: bool = False,
        current_page: str | None = None,
    ) -> AnalyticsSession | None:
        """
        Update counters and current page of an active session.

        Returns:
            Session, or None if not found
        """
        async with self.locks.hold(f"session:{session_id}"):
            return await self.repository.apply_stats(
                session_id,
                page_view=page_view,
                interaction=interaction,
                current_page=current_page,
            )

    async def get_by_id(self, session_id: str) -> AnalyticsSession | None:
        return await self.repository.get_by_key(session_id)

    async def get_active_sessions(self) -> list[AnalyticsSession]:
        return await self.repository.find_active()

    async def get_sessions_by_wallet(self, wallet_address: str) -> list[AnalyticsSession]:
        """Sessions of a wallet, most recent first."""
        return await self.repository.find_by_wallet(normalize_address(wallet_address))
