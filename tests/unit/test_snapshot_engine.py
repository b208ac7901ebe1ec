"""Unit tests for the daily snapshot engine on the in-memory backend."""

import json
from datetime import UTC, date, datetime, timedelta

import pytest

from chainpulse.models.enums import AnalyticsEventType
from chainpulse.schemas.records import AnalyticsSession, ContractEvent, UIEvent
from chainpulse.services.snapshot_engine import rank_counts
from chainpulse.utils.big_uint import BigUInt
from chainpulse.utils.exceptions import ValidationError


DAY = date(2024, 1, 15)
DAY_START = datetime(2024, 1, 15, tzinfo=UTC)


async def seed_day(services, memory_store):
    """Events, users and sessions on DAY plus noise on the neighbouring days."""
    await services.contracts.get_or_create("0xaaa", name="Router")

    for minutes, contract, wallet, gas in [
        (0, "0xaaa", "0xw1", 21000),
        (60, "0xaaa", "0xw2", 2**64),
        (120, "0xbbb", "0xw1", 5),
    ]:
        await services.events.store(
            ContractEvent(
                contract_address=contract,
                event_name="Transfer",
                tx_hash=f"0x{minutes:064x}",
                block_number=minutes,
                log_index=0,
                chain_id=1,
                wallet_address=wallet,
                gas_used=BigUInt(gas),
                timestamp=DAY_START + timedelta(minutes=minutes),
            )
        )

    await services.events.store(
        UIEvent(
            event_type=AnalyticsEventType.PAGE_VIEW,
            wallet_address="0xw3",
            url="/home",
            timestamp=DAY_START + timedelta(hours=23, minutes=59, seconds=59, milliseconds=999),
        )
    )
    # Next day at midnight and previous day last millisecond: outside the window
    for ts in (DAY_START + timedelta(days=1), DAY_START - timedelta(milliseconds=1)):
        await services.events.store(
            UIEvent(event_type=AnalyticsEventType.PAGE_VIEW, wallet_address="0xw9", timestamp=ts)
        )

    for wallet, first_seen in [("0xw1", DAY_START + timedelta(hours=1)), ("0xw2", DAY_START - timedelta(days=3))]:
        await services.users.get_or_create(wallet)
        memory_store.users[wallet].first_seen = first_seen

    for session_id, start, duration in [
        ("s1", DAY_START + timedelta(hours=2), 60_000),
        ("s2", DAY_START + timedelta(hours=3), 120_000),
        ("s3", DAY_START + timedelta(hours=4), None),
        ("s0", DAY_START - timedelta(hours=1), 999_000),
    ]:
        memory_store.sessions[session_id] = AnalyticsSession(
            id=session_id,
            start_time=start,
            duration=duration,
            is_active=duration is None,
        )


class TestRankCounts:
    """Tests for rank_counts."""

    def test_orders_by_count_then_key(self):
        """Count desc, key asc on ties, zeros dropped, limited."""
        counts = {"b": 2, "a": 2, "c": 5, "d": 0, "e": 1}
        assert rank_counts(counts, 3) == [("c", 5), ("a", 2), ("b", 2)]

    def test_empty(self):
        assert rank_counts({}, 10) == []


class TestCreateDailySnapshot:
    """Tests for create_daily_snapshot."""

    @pytest.mark.asyncio
    async def test_compiles_day(self, services, memory_store):
        """Snapshot aggregates only the half-open UTC day window."""
        await seed_day(services, memory_store)

        snapshot = await services.snapshots.create_daily_snapshot(DAY)

        assert snapshot.date == DAY
        assert snapshot.new_users == 1
        assert snapshot.active_users == 3
        assert snapshot.total_sessions == 3
        assert snapshot.average_session_duration == 90_000.0
        assert snapshot.total_transactions == 3
        assert snapshot.total_gas_used == BigUInt(21000 + 2**64 + 5)
        assert [(c.address, c.name, c.interactions) for c in snapshot.top_contracts] == [
            ("0xaaa", "Router", 2),
            ("0xbbb", None, 1),
        ]
        assert [(e.event_type, e.count) for e in snapshot.top_events] == [
            ("contract_interaction", 3),
            ("page_view", 1),
        ]

    @pytest.mark.asyncio
    async def test_empty_day(self, services):
        """A day without data yields a zeroed snapshot."""
        snapshot = await services.snapshots.create_daily_snapshot("2024-02-01")

        assert snapshot.to_dict() == {
            "date": "2024-02-01",
            "new_users": 0,
            "active_users": 0,
            "total_sessions": 0,
            "average_session_duration": 0.0,
            "total_transactions": 0,
            "total_gas_used": "0",
            "top_contracts": [],
            "top_events": [],
        }

    @pytest.mark.asyncio
    async def test_rerun_is_identical(self, services, memory_store):
        """Recomputing with unchanged inputs yields an identical record."""
        await seed_day(services, memory_store)

        first = await services.snapshots.create_daily_snapshot(DAY)
        second = await services.snapshots.create_daily_snapshot(DAY)

        assert json.dumps(first.to_dict(), sort_keys=True) == json.dumps(
            second.to_dict(), sort_keys=True
        )
        assert len(memory_store.snapshots) == 1

    @pytest.mark.asyncio
    async def test_rerun_overwrites(self, services, memory_store):
        """A rerun after new data replaces the stored snapshot."""
        await services.snapshots.create_daily_snapshot(DAY)
        await seed_day(services, memory_store)
        await services.snapshots.create_daily_snapshot(DAY)

        stored = await services.snapshots.get_daily_snapshot(DAY)

        assert stored.total_transactions == 3

    @pytest.mark.asyncio
    async def test_invalid_date(self, services):
        """Malformed date strings are rejected."""
        with pytest.raises(ValidationError):
            await services.snapshots.create_daily_snapshot("2024-13-45")


class TestSnapshotQueries:
    """Tests for get_daily_snapshot and get_daily_snapshots."""

    @pytest.mark.asyncio
    async def test_range_inclusive_ascending(self, services):
        """Range is inclusive on both ends and sorted by date."""
        for day in ("2024-01-03", "2024-01-01", "2024-01-02", "2024-01-05"):
            await services.snapshots.create_daily_snapshot(day)

        snapshots = await services.snapshots.get_daily_snapshots("2024-01-01", "2024-01-03")

        assert [s.date for s in snapshots] == [
            date(2024, 1, 1),
            date(2024, 1, 2),
            date(2024, 1, 3),
        ]

    @pytest.mark.asyncio
    async def test_missing_snapshot(self, services):
        assert await services.snapshots.get_daily_snapshot(date(2020, 1, 1)) is None
