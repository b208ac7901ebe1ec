"""
Analytics records.

Plain dataclasses returned by repositories and services regardless of the
backend that produced them. Addresses are lowercase, datetimes are UTC,
gas quantities are BigUInt.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any

from chainpulse.config.constants import DEFAULT_PAGE_LIMIT
from chainpulse.models.enums import AnalyticsEventType
from chainpulse.utils.big_uint import ZERO, BigUInt
from chainpulse.utils.datetime_utils import utc_now


@dataclass
class ContractEvent:
    """Decoded on-chain log. Immutable once stored."""

    contract_address: str
    event_name: str
    tx_hash: str
    block_number: int
    log_index: int
    chain_id: int
    event_args: dict[str, Any] = field(default_factory=dict)
    wallet_address: str | None = None
    gas_used: BigUInt | None = None
    gas_price: BigUInt | None = None
    metadata: dict[str, Any] | None = None
    id: str | None = None
    timestamp: datetime = field(default_factory=utc_now)
    event_type: AnalyticsEventType = AnalyticsEventType.CONTRACT_INTERACTION


@dataclass
class UIEvent:
    """Off-chain UI action. Immutable once stored."""

    event_type: AnalyticsEventType
    wallet_address: str | None = None
    session_id: str | None = None
    url: str | None = None
    referrer: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    element: str | None = None
    action: str | None = None
    value: Any = None
    chain_id: int | None = None
    metadata: dict[str, Any] | None = None
    id: str | None = None
    timestamp: datetime = field(default_factory=utc_now)


EventRecord = ContractEvent | UIEvent


@dataclass
class AnalyticsSession:
    """Browsing session."""

    id: str
    start_time: datetime
    wallet_address: str | None = None
    end_time: datetime | None = None
    duration: int | None = None  # milliseconds
    is_active: bool = True
    entry_page: str | None = None
    exit_page: str | None = None
    page_views: int = 1
    interactions: int = 0
    chain_id: int | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    referrer: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def current_page(self) -> str | None:
        """Last page seen in the session."""
        return self.exit_page or self.entry_page


@dataclass
class AnalyticsUser:
    """Per-wallet cumulative statistics."""

    wallet_address: str
    first_seen: datetime
    last_seen: datetime
    total_sessions: int = 0
    total_interactions: int = 0
    total_transactions: int = 0
    total_gas_spent: BigUInt = ZERO
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class ContractAnalytics:
    """Per-contract cumulative statistics."""

    address: str
    last_interaction: datetime
    name: str | None = None
    type: str | None = None
    deployed_at: datetime | None = None
    deployer_address: str | None = None
    total_interactions: int = 0
    unique_users: int = 0
    gas_used: BigUInt = ZERO
    events: dict[str, int] = field(default_factory=dict)
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class TopContract:
    address: str
    name: str | None
    interactions: int


@dataclass(frozen=True)
class TopEvent:
    event_type: str
    count: int


@dataclass(frozen=True)
class PageCount:
    url: str
    users: int


@dataclass
class DailySnapshot:
    """Rollup of one UTC calendar day. Contains no wall-clock fields."""

    date: date
    new_users: int = 0
    active_users: int = 0
    total_sessions: int = 0
    average_session_duration: float = 0.0
    total_transactions: int = 0
    total_gas_used: BigUInt = ZERO
    top_contracts: list[TopContract] = field(default_factory=list)
    top_events: list[TopEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (gas as decimal string, date as ISO)."""
        data = asdict(self)
        data["date"] = self.date.isoformat()
        data["total_gas_used"] = str(self.total_gas_used)
        return data


@dataclass
class RealTimeAnalytics:
    """Read-time view over the trailing hour. Never persisted."""

    active_users: int
    active_sessions: int
    transactions_in_last_hour: int
    events_in_last_hour: int
    top_current_pages: list[PageCount]
    recent_events: list[EventRecord]
    updated_at: datetime


@dataclass
class DashboardStats:
    """Admin dashboard summary for a period."""

    period: str
    active_users: int
    new_users: int
    total_sessions: int
    total_transactions: int
    total_gas_used: BigUInt
    top_contracts: list[TopContract]
    top_events: list[TopEvent]
    recent_events: list[EventRecord]


@dataclass
class EventFilter:
    """Event query filter. Time bounds are inclusive."""

    start_date: datetime | None = None
    end_date: datetime | None = None
    wallet_address: str | None = None
    contract_address: str | None = None
    event_type: AnalyticsEventType | str | None = None
    chain_id: int | None = None


@dataclass
class Pagination:
    limit: int = DEFAULT_PAGE_LIMIT
    offset: int = 0


@dataclass
class EventSort:
    sort_by: str = "timestamp"
    direction: str = "desc"  # asc | desc


@dataclass
class QueryResult:
    """One page of event query results."""

    data: list[EventRecord]
    total: int
    page: int
    limit: int
    has_more: bool
