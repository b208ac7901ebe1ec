"""Unit tests for the blockchain listener manager with fake chain connections."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, PropertyMock

import pytest

from chainpulse.config.chains import WatchedContract
from chainpulse.services.listener import BlockchainListenerManager
from chainpulse.services.listener.chain_connection import (
    DecodedLog,
    TransactionReceipt,
    Web3ChainConnection,
    to_json_safe,
)
from chainpulse.services.listener.event_handling_mixin import extract_wallet
from chainpulse.services.listener.receipt_cache import ReceiptCache
from chainpulse.utils.big_uint import BigUInt
from chainpulse.utils.exceptions import ChainReceiptUnavailable, NoProviderForChain


CONTRACT = "0xABC0000000000000000000000000000000000001"
WALLET = "0x742d35cc6634c0532925a3b844bc9e7595f0beb0"


class FakeChainConnection:
    """Chain connection fed from a queue."""

    def __init__(self, chain_id: int = 1):
        self.chain_id = chain_id
        self.queue: asyncio.Queue = asyncio.Queue()
        self.get_transaction_receipt = AsyncMock(
            return_value=TransactionReceipt(gas_used=BigUInt(21000), gas_price=BigUInt(10**9))
        )
        self.close = AsyncMock()
        self.subscribed: list[str] = []

    async def subscribe(self, address, abi):
        self.subscribed.append(address)
        while True:
            yield await self.queue.get()


class ClosingChainConnection(FakeChainConnection):
    """Chain connection whose stream ends after the given logs."""

    def __init__(self, logs, chain_id: int = 1):
        super().__init__(chain_id)
        self.logs = logs

    async def subscribe(self, address, abi):
        self.subscribed.append(address)
        for log in self.logs:
            yield log


def make_log(index: int = 0, tx_hash: str = "0x" + "ab" * 32, **args) -> DecodedLog:
    return DecodedLog(
        event_name="Transfer",
        args=args or {"from": WALLET, "value": 1},
        tx_hash=tx_hash,
        block_number=100,
        log_index=index,
    )


@pytest.fixture
def connection():
    return FakeChainConnection()


@pytest.fixture
def listener(services, connection):
    """Listener wired to the in-memory services and one fake chain."""
    return BlockchainListenerManager(
        {1: connection},
        services.events,
        services.contracts,
        services.users,
        max_concurrent_handlers=4,
    )


async def drain(listener, connection):
    """Wait until queued logs are consumed and handled."""
    while not connection.queue.empty():
        await asyncio.sleep(0)
    await asyncio.sleep(0)
    await listener.wait_idle()


class TestExtractWallet:
    """Tests for wallet extraction priority."""

    def test_priority(self):
        """user wins over owner, owner over from."""
        assert extract_wallet({"from": "0xC", "owner": "0xB", "user": "0xA"}) == "0xa"
        assert extract_wallet({"from": "0xC", "owner": "0xB"}) == "0xb"
        assert extract_wallet({"from": "0xC"}) == "0xc"

    def test_no_wallet(self):
        """Non-string and missing values give None."""
        assert extract_wallet({"value": 5}) is None
        assert extract_wallet({"user": 123}) is None


class TestReceiptCache:
    """Tests for the receipt LRU."""

    def test_evicts_least_recently_used(self):
        cache = ReceiptCache(max_size=2)
        receipt = TransactionReceipt(gas_used=BigUInt(1))
        cache.put(1, "0xA", receipt)
        cache.put(1, "0xB", receipt)
        cache.get(1, "0xa")
        cache.put(1, "0xC", receipt)

        assert cache.get(1, "0xA") is receipt
        assert cache.get(1, "0xB") is None
        assert len(cache) == 2

    def test_disabled(self):
        cache = ReceiptCache(max_size=0)
        cache.put(1, "0xA", TransactionReceipt(gas_used=BigUInt(1)))
        assert len(cache) == 0


class TestListenerSubscriptions:
    """Tests for add_contract and remove_contract."""

    @pytest.mark.asyncio
    async def test_add_contract_creates_analytics(self, listener, services, connection):
        """Adding a contract subscribes and creates its analytics record."""
        added = await listener.add_contract(CONTRACT, [], name="Token", type="ERC20")
        await asyncio.sleep(0)

        record = await services.contracts.get_by_address(CONTRACT)

        assert added is True
        assert record.name == "Token"
        assert [(s.chain_id, s.address) for s in listener.list_contracts()] == [
            (1, CONTRACT.lower())
        ]
        assert connection.subscribed == [CONTRACT.lower()]
        await listener.stop()

    @pytest.mark.asyncio
    async def test_add_contract_idempotent(self, listener):
        """Adding the same contract twice keeps one subscription."""
        assert await listener.add_contract(CONTRACT, []) is True
        assert await listener.add_contract(CONTRACT.lower(), []) is False
        assert len(listener.list_contracts()) == 1
        await listener.stop()

    @pytest.mark.asyncio
    async def test_concurrent_add_single_subscription(self, listener):
        """Concurrent adds of one contract create one subscription."""
        results = await asyncio.gather(*[listener.add_contract(CONTRACT, []) for _ in range(5)])

        assert results.count(True) == 1
        assert len(listener.list_contracts()) == 1
        await listener.stop()

    @pytest.mark.asyncio
    async def test_unknown_chain(self, listener):
        """Chains without a connection raise NoProviderForChain."""
        with pytest.raises(NoProviderForChain) as exc_info:
            await listener.add_contract(CONTRACT, [], chain_id=999)

        assert "999" in str(exc_info.value)
        assert listener.list_contracts() == []

    @pytest.mark.asyncio
    async def test_remove_contract(self, listener, connection):
        """Removed contracts receive no further events."""
        await listener.add_contract(CONTRACT, [])

        assert await listener.remove_contract(CONTRACT) is True
        assert await listener.remove_contract(CONTRACT) is False
        assert listener.list_contracts() == []

        await connection.queue.put(make_log())
        await asyncio.sleep(0)
        assert listener.in_flight == 0

    @pytest.mark.asyncio
    async def test_start_with_watched(self, services, connection):
        """Statically watched contracts are subscribed on start."""
        watched = [
            WatchedContract(chain_id=1, address=CONTRACT.lower(), abi=[], name="Token"),
            WatchedContract(chain_id=137, address=CONTRACT.lower(), abi=[], name="Token"),
        ]
        listener = BlockchainListenerManager(
            {1: connection}, services.events, services.contracts, services.users, watched=watched
        )

        count = await listener.start()

        assert count == 1
        await listener.stop()
        connection.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_remove_keeps_in_flight_handler(self, listener, services, connection):
        """A handler already running when its contract is removed still completes."""
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_receipt(tx_hash):
            started.set()
            await release.wait()
            return TransactionReceipt(gas_used=BigUInt(21000))

        connection.get_transaction_receipt = AsyncMock(side_effect=slow_receipt)
        await listener.add_contract(CONTRACT, [])
        await connection.queue.put(make_log())
        await asyncio.wait_for(started.wait(), timeout=1)

        assert await listener.remove_contract(CONTRACT) is True
        assert listener.in_flight == 1

        release.set()
        await listener.wait_idle()
        contract = await services.contracts.get_by_address(CONTRACT)

        assert contract.total_interactions == 1
        assert (await services.events.query()).total == 1

    @pytest.mark.asyncio
    async def test_closed_stream_drops_subscription(self, services):
        """A stream that ends on its own frees the subscription for re-adding."""
        connection = ClosingChainConnection([make_log()])
        listener = BlockchainListenerManager(
            {1: connection}, services.events, services.contracts, services.users
        )

        await listener.add_contract(CONTRACT, [])
        await listener.list_contracts()[0].task
        await listener.wait_idle()

        assert listener.list_contracts() == []
        assert (await services.events.query()).total == 1
        assert await listener.add_contract(CONTRACT, []) is True
        await listener.stop()


class TestListenerEventHandling:
    """Tests for the per-log pipeline."""

    @pytest.mark.asyncio
    async def test_log_updates_all_aggregates(self, listener, services, connection):
        """One log stores an event and updates contract and user aggregates."""
        await listener.add_contract(CONTRACT, [])
        await connection.queue.put(make_log())
        await drain(listener, connection)

        events = await services.events.query()
        contract = await services.contracts.get_by_address(CONTRACT)
        user = await services.users.get_by_wallet(WALLET)

        assert events.total == 1
        event = events.data[0]
        assert event.contract_address == CONTRACT.lower()
        assert event.wallet_address == WALLET
        assert event.gas_used == BigUInt(21000)
        assert event.gas_price == BigUInt(10**9)
        assert contract.total_interactions == 1
        assert contract.unique_users == 1
        assert contract.events == {"Transfer": 1}
        assert user.total_transactions == 1
        assert user.total_gas_spent == BigUInt(21000)
        await listener.stop()

    @pytest.mark.asyncio
    async def test_receipt_cached_per_transaction(self, listener, connection):
        """Several logs of one transaction fetch the receipt once."""
        await listener.add_contract(CONTRACT, [])
        for index in range(3):
            await connection.queue.put(make_log(index))
        await drain(listener, connection)

        assert connection.get_transaction_receipt.await_count == 1
        await listener.stop()

    @pytest.mark.asyncio
    async def test_receipt_failure_stores_event(self, listener, services, connection):
        """A failed receipt lookup still stores the event without gas."""
        connection.get_transaction_receipt.side_effect = ChainReceiptUnavailable(
            1, "0x" + "ab" * 32, "timeout"
        )
        await listener.add_contract(CONTRACT, [])
        await connection.queue.put(make_log())
        await drain(listener, connection)

        events = await services.events.query()
        contract = await services.contracts.get_by_address(CONTRACT)

        assert events.total == 1
        assert events.data[0].gas_used is None
        assert contract.total_interactions == 1
        assert contract.gas_used == BigUInt(0)
        await listener.stop()

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_subscription(self, listener, services, connection):
        """A failing handler is logged and later logs are still processed."""
        original_store = services.events.store
        services.events.store = AsyncMock(side_effect=[RuntimeError("boom"), "ok"])

        await listener.add_contract(CONTRACT, [])
        await connection.queue.put(make_log(0, tx_hash="0x01"))
        await connection.queue.put(make_log(1, tx_hash="0x02"))
        await drain(listener, connection)

        assert services.events.store.await_count == 2
        assert len(listener.list_contracts()) == 1
        services.events.store = original_store
        await listener.stop()

    @pytest.mark.asyncio
    async def test_log_without_wallet(self, listener, services, connection):
        """Logs without a wallet argument update only the contract."""
        await listener.add_contract(CONTRACT, [])
        await connection.queue.put(make_log(value=5))
        await drain(listener, connection)

        contract = await services.contracts.get_by_address(CONTRACT)

        assert contract.total_interactions == 1
        assert contract.unique_users == 0
        assert await services.users.get_all() == []
        await listener.stop()


class TestWeb3ChainConnection:
    """Tests for receipt resolution over a mocked Web3 instance."""

    @pytest.fixture
    def w3(self):
        w3 = MagicMock()
        w3.eth.get_transaction_receipt.return_value = {
            "gasUsed": 21000,
            "effectiveGasPrice": 2 * 10**9,
        }
        return w3

    @pytest.mark.asyncio
    async def test_receipt_gas_fields(self, w3):
        connection = Web3ChainConnection(1, "http://localhost:8545", w3=w3)

        receipt = await connection.get_transaction_receipt("0x" + "ab" * 32)

        assert receipt.gas_used == BigUInt(21000)
        assert receipt.gas_price == BigUInt(2 * 10**9)
        await connection.close()

    @pytest.mark.asyncio
    async def test_receipt_error_wrapped(self, w3):
        """RPC errors surface as ChainReceiptUnavailable."""
        w3.eth.get_transaction_receipt.side_effect = TimeoutError("rpc timeout")
        connection = Web3ChainConnection(137, "http://localhost:8545", w3=w3)

        with pytest.raises(ChainReceiptUnavailable):
            await connection.get_transaction_receipt("0x" + "ab" * 32)
        await connection.close()

    def test_to_json_safe(self):
        """Bytes become hex strings, tuples become lists."""
        assert to_json_safe({"data": b"\x01\x02", "pair": (1, b"\xff")}) == {
            "data": "0x0102",
            "pair": [1, "0xff"],
        }

    @pytest.mark.asyncio
    async def test_start_block_retried(self, w3, services):
        """A failing first block-number call is retried instead of ending the subscription."""
        calls = []

        def block_number():
            calls.append(1)
            if len(calls) == 1:
                raise ConnectionError("connection reset")
            return 100

        type(w3.eth).block_number = PropertyMock(side_effect=block_number)
        w3.eth.get_logs.return_value = []
        connection = Web3ChainConnection(1, "http://localhost:8545", poll_interval=0.01, w3=w3)
        listener = BlockchainListenerManager(
            {1: connection}, services.events, services.contracts, services.users
        )

        await listener.add_contract(CONTRACT, [])
        for _ in range(50):
            if len(calls) >= 3:
                break
            await asyncio.sleep(0.01)

        assert len(calls) >= 3
        assert len(listener.list_contracts()) == 1
        await listener.stop()
