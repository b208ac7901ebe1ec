"""
Ingestion service.

Entry points consumed by the HTTP layer: UI event tracking and session
start/end.
"""

from loguru import logger

from chainpulse.models.enums import AnalyticsEventType
from chainpulse.schemas.payloads import StartSessionPayload, TrackEventPayload
from chainpulse.schemas.records import AnalyticsSession, UIEvent
from chainpulse.services.event_store import EventStore
from chainpulse.services.session_tracker import SessionTracker
from chainpulse.services.user_analytics import UserAnalyticsAggregator
from chainpulse.utils.exceptions import NotFound
from chainpulse.utils.security import mask_address


class IngestionService:
    """Frontend analytics ingestion."""

    def __init__(
        self,
        events: EventStore,
        sessions: SessionTracker,
        users: UserAnalyticsAggregator,
    ) -> None:
        self.events = events
        self.sessions = sessions
        self.users = users

    async def track_ui_event(
        self,
        payload: TrackEventPayload,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        """
        Store a UI event and update the session and user it belongs to.

        Args:
            payload: Validated event payload
            user_agent: Client user agent
            ip_address: Client IP

        Returns:
            Stored event id
        """
        event = UIEvent(
            event_type=payload.event_type,
            wallet_address=payload.wallet_address,
            session_id=payload.session_id,
            url=payload.url,
            referrer=payload.referrer,
            user_agent=user_agent,
            ip_address=ip_address,
            element=payload.element,
            action=payload.action,
            value=payload.value,
            chain_id=payload.chain_id,
            metadata=payload.metadata,
        )
        event_id = await self.events.store(event)

        if payload.session_id:
            is_page_view = payload.event_type == AnalyticsEventType.PAGE_VIEW
            await self.sessions.update_session_stats(
                payload.session_id,
                page_view=is_page_view,
                interaction=not is_page_view,
                current_page=payload.url,
            )

        if payload.wallet_address:
            await self.users.get_or_create(payload.wallet_address)
            await self.users.update_stats(
                payload.wallet_address,
                new_interaction=True,
                metadata=payload.metadata,
            )

        logger.debug(
            f"[Ingestion] Tracked {payload.event_type} "
            f"(wallet={mask_address(payload.wallet_address)})"
        )
        return event_id

    async def start_session(
        self,
        payload: StartSessionPayload,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AnalyticsSession:
        """
        Start a session and count it for the wallet, if any.

        Returns:
            Created session
        """
        session = await self.sessions.create_session(
            wallet_address=payload.wallet_address,
            user_agent=user_agent,
            ip_address=ip_address,
            referrer=payload.referrer,
            entry_page=payload.entry_page,
            chain_id=payload.chain_id,
        )

        if payload.wallet_address:
            await self.users.get_or_create(payload.wallet_address)
            await self.users.update_stats(payload.wallet_address, new_session=True)

        return session

    async def end_session(
        self, session_id: str, exit_page: str | None = None
    ) -> AnalyticsSession:
        """
        End a session.

        Raises:
            NotFound: If the session does not exist
        """
        session = await self.sessions.end_session(session_id, exit_page)
        if session is None:
            raise NotFound("Session", session_id)
        return session
