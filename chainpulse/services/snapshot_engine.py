"""
Snapshot engine.

Compiles raw events, sessions and users into one record per UTC calendar
day. The day is the half-open window [00:00:00, next day 00:00:00), which
at millisecond resolution is [00:00:00.000, 23:59:59.999].
"""

from datetime import date, datetime

from loguru import logger

from chainpulse.config.constants import SNAPSHOT_TOP_LIMIT
from chainpulse.models.enums import AnalyticsEventType
from chainpulse.repositories.contract_repository import ContractRepository
from chainpulse.repositories.event_repository import EventRepository
from chainpulse.repositories.session_repository import SessionRepository
from chainpulse.repositories.snapshot_repository import SnapshotRepository
from chainpulse.repositories.user_repository import UserRepository
from chainpulse.schemas.records import DailySnapshot, TopContract, TopEvent
from chainpulse.utils.datetime_utils import day_window, parse_day


def rank_counts(counts: dict[str, int], limit: int) -> list[tuple[str, int]]:
    """Top entries by count desc, key asc; zero counts dropped."""
    ranked = sorted(
        ((key, count) for key, count in counts.items() if count > 0),
        key=lambda item: (-item[1], item[0]),
    )
    return ranked[:limit]


class SnapshotEngine:
    """Daily rollup compiler."""

    def __init__(
        self,
        snapshots: SnapshotRepository,
        events: EventRepository,
        users: UserRepository,
        sessions: SessionRepository,
        contracts: ContractRepository,
    ) -> None:
        self.snapshots = snapshots
        self.events = events
        self.users = users
        self.sessions = sessions
        self.contracts = contracts

    async def create_daily_snapshot(self, day: date | datetime | str) -> DailySnapshot:
        """
        Compute and upsert the snapshot for one UTC day.

        Recomputing with unchanged inputs yields an identical record.

        Args:
            day: Calendar day (date, datetime or "YYYY-MM-DD")

        Returns:
            Stored snapshot

        Raises:
            ValidationError: If day is not a valid date
        """
        day = parse_day(day)
        start, end = day_window(day)
        logger.info(f"[Snapshot] Compiling snapshot for {day.isoformat()}")

        new_users = await self.users.count_first_seen_between(start, end)
        active_wallets = await self.events.distinct_wallets(start, end)

        sessions = await self.sessions.find_started_between(start, end)
        durations = [s.duration for s in sessions if s.duration is not None]
        average_duration = sum(durations) / len(durations) if durations else 0.0

        type_counts = await self.events.count_by_type(start, end)
        total_gas = await self.events.sum_gas_used(start, end)

        contract_counts = await self.events.count_by_contract(start, end)
        top_contracts = []
        for address, count in rank_counts(contract_counts, SNAPSHOT_TOP_LIMIT):
            contract = await self.contracts.get_by_key(address)
            top_contracts.append(
                TopContract(
                    address=address,
                    name=contract.name if contract else None,
                    interactions=count,
                )
            )

        snapshot = DailySnapshot(
            date=day,
            new_users=new_users,
            active_users=len(active_wallets),
            total_sessions=len(sessions),
            average_session_duration=float(average_duration),
            total_transactions=type_counts.get(AnalyticsEventType.CONTRACT_INTERACTION.value, 0),
            total_gas_used=total_gas,
            top_contracts=top_contracts,
            top_events=[
                TopEvent(event_type=event_type, count=count)
                for event_type, count in rank_counts(type_counts, SNAPSHOT_TOP_LIMIT)
            ],
        )

        stored = await self.snapshots.upsert(snapshot)
        logger.info(
            f"[Snapshot] {day.isoformat()}: active={stored.active_users}, "
            f"new={stored.new_users}, sessions={stored.total_sessions}, "
            f"tx={stored.total_transactions}"
        )
        return stored

    async def get_daily_snapshot(self, day: date | datetime | str) -> DailySnapshot | None:
        return await self.snapshots.get_by_key(parse_day(day))

    async def get_daily_snapshots(
        self, start_date: date | datetime | str, end_date: date | datetime | str
    ) -> list[DailySnapshot]:
        """Snapshots between two days, both inclusive, ascending by date."""
        return await self.snapshots.find_between(parse_day(start_date), parse_day(end_date))
