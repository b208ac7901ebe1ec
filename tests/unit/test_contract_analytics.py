"""Unit tests for ContractAnalyticsAggregator on the in-memory backend."""

import asyncio

import pytest

from chainpulse.utils.big_uint import BigUInt


CONTRACT = "0xABC0000000000000000000000000000000000001"


class TestContractGetOrCreate:
    """Tests for get_or_create."""

    @pytest.mark.asyncio
    async def test_creates_zeroed_record(self, services):
        """First sighting creates a zeroed, lowercased record."""
        record = await services.contracts.get_or_create(CONTRACT, name="Token", type="ERC20")

        assert record.address == CONTRACT.lower()
        assert record.name == "Token"
        assert record.type == "ERC20"
        assert record.total_interactions == 0
        assert record.unique_users == 0
        assert record.gas_used == BigUInt(0)
        assert record.events == {}

    @pytest.mark.asyncio
    async def test_idempotent(self, services):
        """Second call returns the stored record, not a new one."""
        first = await services.contracts.get_or_create(CONTRACT, name="Token")
        await services.contracts.update(CONTRACT, "Transfer")
        second = await services.contracts.get_or_create(CONTRACT, name="Renamed")

        assert second.name == "Token"
        assert second.total_interactions == 1
        assert second.last_interaction >= first.last_interaction

    @pytest.mark.asyncio
    async def test_concurrent_creates_single_record(self, services):
        """Concurrent first sightings produce exactly one record."""
        results = await asyncio.gather(
            *[services.contracts.get_or_create(CONTRACT) for _ in range(10)]
        )

        assert {r.address for r in results} == {CONTRACT.lower()}
        assert len(await services.contracts.get_all()) == 1


class TestContractUpdate:
    """Tests for update."""

    @pytest.mark.asyncio
    async def test_counts_unique_wallets(self, services):
        """Three interactions by two wallets give total 3, unique 2."""
        await services.contracts.get_or_create(CONTRACT)
        await services.contracts.update(CONTRACT, "Transfer", "0xW1", "21000")
        await services.contracts.update(CONTRACT, "Approval", "0xW2", "46000")
        record = await services.contracts.update(CONTRACT, "Transfer", "0xW1", "21000")

        assert record.total_interactions == 3
        assert record.unique_users == 2
        assert record.gas_used == BigUInt(88000)
        assert record.events == {"Transfer": 2, "Approval": 1}

    @pytest.mark.asyncio
    async def test_same_wallet_twice(self, services):
        """Same wallet twice increments totals by 2 and unique users by 1."""
        await services.contracts.get_or_create(CONTRACT)
        await services.contracts.update(CONTRACT, "Transfer", "0xW1")
        record = await services.contracts.update(CONTRACT, "Transfer", "0xw1")

        assert record.total_interactions == 2
        assert record.unique_users == 1

    @pytest.mark.asyncio
    async def test_without_wallet(self, services):
        """Interactions without a wallet do not count users."""
        await services.contracts.get_or_create(CONTRACT)
        record = await services.contracts.update(CONTRACT, "Paused")

        assert record.total_interactions == 1
        assert record.unique_users == 0

    @pytest.mark.asyncio
    async def test_concurrent_updates_not_lost(self, services):
        """Concurrent updates are all applied."""
        await services.contracts.get_or_create(CONTRACT)
        wallets = [f"0xw{i % 5}" for i in range(50)]

        await asyncio.gather(
            *[services.contracts.update(CONTRACT, "Transfer", w, 1) for w in wallets]
        )
        record = await services.contracts.get_by_address(CONTRACT)

        assert record.total_interactions == 50
        assert record.unique_users == 5
        assert record.gas_used == BigUInt(50)

    @pytest.mark.asyncio
    async def test_gas_beyond_64_bits(self, services):
        """Gas accumulates without precision loss."""
        big = str(2**64)
        await services.contracts.get_or_create(CONTRACT)
        await services.contracts.update(CONTRACT, "Transfer", gas_used=big)
        record = await services.contracts.update(CONTRACT, "Transfer", gas_used=big)

        assert str(record.gas_used) == str(2**65)

    @pytest.mark.asyncio
    async def test_metadata_merged(self, services):
        """Metadata is shallow-merged."""
        await services.contracts.get_or_create(CONTRACT, metadata={"a": 1})
        record = await services.contracts.update(CONTRACT, "Transfer", metadata={"b": 2})

        assert record.metadata == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_missing_contract_returns_none(self, services):
        """Updating an unknown contract returns None and creates nothing."""
        result = await services.contracts.update(CONTRACT, "Transfer", "0xW1")

        assert result is None
        assert await services.contracts.get_by_address(CONTRACT) is None

    @pytest.mark.asyncio
    async def test_returned_record_is_a_copy(self, services):
        """Mutating a returned record does not change stored state."""
        record = await services.contracts.get_or_create(CONTRACT)
        record.events["Injected"] = 99

        stored = await services.contracts.get_by_address(CONTRACT)
        assert stored.events == {}


class TestContractTop:
    """Tests for get_top and get_all ordering."""

    @pytest.mark.asyncio
    async def test_top_by_interactions(self, services):
        """Contracts ordered by interactions desc, address asc on ties."""
        for address, count in [("0xc", 1), ("0xa", 3), ("0xb", 3)]:
            await services.contracts.get_or_create(address)
            for _ in range(count):
                await services.contracts.update(address, "Transfer")

        top = await services.contracts.get_top(limit=2)

        assert [c.address for c in top] == ["0xa", "0xb"]
        assert [c.address for c in await services.contracts.get_all()] == ["0xa", "0xb", "0xc"]
