"""
Dashboard composer.

Read-time views over the aggregators and the event store. Nothing here is
persisted.
"""

from collections import Counter

from chainpulse.config.constants import (
    DASHBOARD_PERIODS,
    DASHBOARD_RECENT_EVENTS,
    DASHBOARD_TOP_LIMIT,
    REAL_TIME_RECENT_EVENTS,
    REAL_TIME_TOP_PAGES,
    REAL_TIME_WINDOW,
)
from chainpulse.models.enums import AnalyticsEventType
from chainpulse.repositories.event_repository import EventRepository
from chainpulse.schemas.records import (
    AnalyticsSession,
    DashboardStats,
    EventFilter,
    EventSort,
    PageCount,
    Pagination,
    RealTimeAnalytics,
    TopContract,
    TopEvent,
)
from chainpulse.services.contract_analytics import ContractAnalyticsAggregator
from chainpulse.services.event_store import EventStore
from chainpulse.services.session_tracker import SessionTracker
from chainpulse.services.snapshot_engine import rank_counts
from chainpulse.services.user_analytics import UserAnalyticsAggregator
from chainpulse.utils.datetime_utils import utc_now
from chainpulse.utils.exceptions import ValidationError


def rank_current_pages(
    sessions: list[AnalyticsSession], limit: int = REAL_TIME_TOP_PAGES
) -> list[PageCount]:
    """Group active sessions by current page, most sessions first."""
    counts = Counter(s.current_page for s in sessions if s.current_page)
    return [PageCount(url=url, users=users) for url, users in rank_counts(counts, limit)]


class RealTimeDashboardComposer:
    """Composes real-time and per-period dashboard views."""

    def __init__(
        self,
        events: EventStore,
        users: UserAnalyticsAggregator,
        sessions: SessionTracker,
        contracts: ContractAnalyticsAggregator,
    ) -> None:
        self.events = events
        self.users = users
        self.sessions = sessions
        self.contracts = contracts

    @property
    def _event_repository(self) -> EventRepository:
        return self.events.repository

    async def get_real_time_analytics(
        self, recent_limit: int = REAL_TIME_RECENT_EVENTS
    ) -> RealTimeAnalytics:
        """
        Snapshot of the trailing hour.

        Args:
            recent_limit: Number of recent events to include

        Returns:
            RealTimeAnalytics
        """
        now = utc_now()
        hour_ago = now - REAL_TIME_WINDOW

        active_users = await self.users.get_active_users()
        active_sessions = await self.sessions.get_active_sessions()
        type_counts = await self._event_repository.count_by_type(hour_ago, now, inclusive_end=True)
        recent = await self.events.query(
            EventFilter(start_date=hour_ago, end_date=now),
            Pagination(limit=recent_limit),
            EventSort(sort_by="timestamp", direction="desc"),
        )

        return RealTimeAnalytics(
            active_users=len(active_users),
            active_sessions=len(active_sessions),
            transactions_in_last_hour=type_counts.get(
                AnalyticsEventType.CONTRACT_INTERACTION.value, 0
            ),
            events_in_last_hour=sum(type_counts.values()),
            top_current_pages=rank_current_pages(active_sessions),
            recent_events=recent.data,
            updated_at=now,
        )

    async def get_dashboard_stats(self, period: str = "day") -> DashboardStats:
        """
        Admin dashboard summary.

        Args:
            period: day, week, month or all

        Returns:
            DashboardStats

        Raises:
            ValidationError: On unknown period
        """
        if period not in DASHBOARD_PERIODS:
            raise ValidationError(
                f"Invalid period: {period!r}. Expected one of {', '.join(DASHBOARD_PERIODS)}"
            )

        window = DASHBOARD_PERIODS[period]
        now = utc_now()
        start = now - window if window is not None else None
        repository = self._event_repository

        active_users = await self.users.get_active_users()
        if start is None:
            new_users = await self.users.repository.count()
            total_sessions = await self.sessions.repository.count()
        else:
            new_users = len(await self.users.repository.find_first_seen_since(start))
            total_sessions = len(await self.sessions.repository.find_started_between(start))

        type_counts = await repository.count_by_type(start, now, inclusive_end=True)
        total_gas = await repository.sum_gas_used(start)
        top_contracts = await self.contracts.get_top(DASHBOARD_TOP_LIMIT)
        recent = await self.events.query(
            EventFilter(start_date=start),
            Pagination(limit=DASHBOARD_RECENT_EVENTS),
            EventSort(sort_by="timestamp", direction="desc"),
        )

        return DashboardStats(
            period=period,
            active_users=len(active_users),
            new_users=new_users,
            total_sessions=total_sessions,
            total_transactions=type_counts.get(AnalyticsEventType.CONTRACT_INTERACTION.value, 0),
            total_gas_used=total_gas,
            top_contracts=[
                TopContract(address=c.address, name=c.name, interactions=c.total_interactions)
                for c in top_contracts
            ],
            top_events=[
                TopEvent(event_type=event_type, count=count)
                for event_type, count in rank_counts(type_counts, DASHBOARD_TOP_LIMIT)
            ],
            recent_events=recent.data,
        )
