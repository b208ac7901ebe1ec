"""
Blockchain Listener Manager Core.

Keeps one subscription per (chain id, contract address) and feeds every
received log through the event-handling pipeline.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from chainpulse.config.chains import WatchedContract
from chainpulse.services.contract_analytics import ContractAnalyticsAggregator
from chainpulse.services.event_store import EventStore
from chainpulse.services.listener.chain_connection import ChainConnection, DecodedLog
from chainpulse.services.listener.event_handling_mixin import EventHandlingMixin
from chainpulse.services.listener.receipt_cache import ReceiptCache
from chainpulse.services.user_analytics import UserAnalyticsAggregator
from chainpulse.utils.exceptions import NoProviderForChain
from chainpulse.utils.security import mask_address, normalize_address


@dataclass
class Subscription:
    """Active subscription to one contract on one chain."""

    chain_id: int
    address: str
    name: str | None = None
    type: str | None = None
    task: asyncio.Task | None = field(default=None, repr=False, compare=False)


class BlockchainListenerManager(EventHandlingMixin):
    """
    Multi-chain contract event listener.

    Logs of one subscription are dispatched in log order; handlers run as
    independent tasks, bounded process-wide by ``max_concurrent_handlers``.
    While all handler slots are taken the subscription pumps stop reading.
    Removing a subscription stops future deliveries without cancelling
    handlers already running.
    """

    def __init__(
        self,
        connections: dict[int, ChainConnection],
        events: EventStore,
        contracts: ContractAnalyticsAggregator,
        users: UserAnalyticsAggregator,
        watched: list[WatchedContract] | None = None,
        max_concurrent_handlers: int = 32,
        receipt_cache_size: int = 1024,
    ) -> None:
        """
        Initialize manager.

        Args:
            connections: Chain id -> chain connection
            events: Event store
            contracts: Contract analytics aggregator
            users: User analytics aggregator
            watched: Statically configured contracts subscribed on start()
            max_concurrent_handlers: In-flight handler limit
            receipt_cache_size: Receipt LRU size
        """
        self.connections = connections
        self.events = events
        self.contracts = contracts
        self.users = users
        self.watched = list(watched or [])
        self.receipt_cache = ReceiptCache(receipt_cache_size)

        self._subscriptions: dict[tuple[int, str], Subscription] = {}
        self._handler_slots = asyncio.Semaphore(max_concurrent_handlers)
        self._handler_tasks: set[asyncio.Task] = set()

    async def start(self) -> int:
        """
        Subscribe to every statically configured contract.

        A failure on one contract is logged and does not stop the others.

        Returns:
            Number of active subscriptions
        """
        logger.info("[Listener] Starting blockchain event listeners...")

        for watched in self.watched:
            try:
                await self.add_contract(
                    watched.address,
                    watched.abi,
                    name=watched.name,
                    type=watched.type,
                    chain_id=watched.chain_id,
                )
            except Exception as e:
                logger.error(
                    f"[Listener] Failed to start {mask_address(watched.address)} "
                    f"on chain {watched.chain_id}: {e}"
                )

        logger.success(f"[Listener] Listening to {len(self._subscriptions)} contracts")
        return len(self._subscriptions)

    async def add_contract(
        self,
        address: str,
        abi: list[dict[str, Any]],
        name: str | None = None,
        type: str | None = None,
        chain_id: int = 1,
    ) -> bool:
        """
        Begin listening to a contract at runtime.

        Args:
            address: Contract address
            abi: Contract ABI
            name: Contract name
            type: Contract type
            chain_id: Chain to listen on

        Returns:
            True if a new subscription was created, False if already listening

        Raises:
            NoProviderForChain: If chain_id has no configured connection
        """
        connection = self.connections.get(chain_id)
        if connection is None:
            raise NoProviderForChain(chain_id)

        address = normalize_address(address)
        key = (chain_id, address)
        if key in self._subscriptions:
            logger.info(
                f"[Listener] Already listening to {mask_address(address)} on chain {chain_id}"
            )
            return False

        subscription = Subscription(chain_id=chain_id, address=address, name=name, type=type)
        # Reserve the key before awaiting so concurrent calls stay idempotent
        self._subscriptions[key] = subscription
        try:
            await self.contracts.get_or_create(address, name=name, type=type)
        except Exception:
            self._subscriptions.pop(key, None)
            raise

        subscription.task = asyncio.create_task(
            self._pump(subscription, connection, abi),
            name=f"listener:{chain_id}:{address}",
        )
        logger.info(
            f"[Listener] Started listening to {name or mask_address(address)} on chain {chain_id}"
        )
        return True

    async def remove_contract(self, address: str, chain_id: int = 1) -> bool:
        """
        Stop listening to a contract.

        In-flight handlers for already delivered logs keep running.

        Returns:
            True if a subscription was removed, False if not listening
        """
        address = normalize_address(address)
        subscription = self._subscriptions.pop((chain_id, address), None)
        if subscription is None:
            logger.info(f"[Listener] Not listening to {mask_address(address)} on chain {chain_id}")
            return False

        if subscription.task is not None:
            subscription.task.cancel()
            try:
                await subscription.task
            except asyncio.CancelledError:
                pass

        logger.info(f"[Listener] Stopped listening to {mask_address(address)} on chain {chain_id}")
        return True

    def list_contracts(self) -> list[Subscription]:
        """Active subscriptions."""
        return list(self._subscriptions.values())

    @property
    def in_flight(self) -> int:
        """Number of handlers currently running."""
        return len(self._handler_tasks)

    async def wait_idle(self) -> None:
        """Wait until every dispatched handler has finished."""
        while self._handler_tasks:
            await asyncio.gather(*list(self._handler_tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel all subscriptions, drain handlers and close connections."""
        for chain_id, address in list(self._subscriptions):
            await self.remove_contract(address, chain_id)
        await self.wait_idle()

        for connection in self.connections.values():
            try:
                await connection.close()
            except Exception as e:
                logger.warning(f"[Listener] Error closing chain {connection.chain_id}: {e}")

        logger.info("[Listener] Stopped")

    async def _pump(
        self,
        subscription: Subscription,
        connection: ChainConnection,
        abi: list[dict[str, Any]],
    ) -> None:
        cancelled = False
        try:
            async for log in connection.subscribe(subscription.address, abi):
                await self._handler_slots.acquire()
                task = asyncio.create_task(self._run_handler(subscription, log))
                self._handler_tasks.add(task)
                task.add_done_callback(self._handler_tasks.discard)
            logger.warning(
                f"[Listener] Subscription {mask_address(subscription.address)} on chain "
                f"{subscription.chain_id} stream closed"
            )
        except asyncio.CancelledError:
            cancelled = True
            raise
        except Exception as e:
            logger.error(
                f"[Listener] Subscription {mask_address(subscription.address)} on chain "
                f"{subscription.chain_id} ended: {e}"
            )
        finally:
            key = (subscription.chain_id, subscription.address)
            if not cancelled and self._subscriptions.get(key) is subscription:
                del self._subscriptions[key]

    async def _run_handler(self, subscription: Subscription, log: DecodedLog) -> None:
        try:
            await self.handle_log(subscription.chain_id, subscription.address, log)
        finally:
            self._handler_slots.release()
