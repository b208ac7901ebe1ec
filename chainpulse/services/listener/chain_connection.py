"""
Chain connections.

A chain connection streams decoded logs for one contract and resolves
transaction receipts. Web3ChainConnection polls eth_getLogs over HTTP,
running the synchronous web3 calls in a thread pool.
"""

import asyncio
import functools
from collections.abc import AsyncIterator, Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

from eth_utils import event_abi_to_log_topic
from loguru import logger
from web3 import Web3

from chainpulse.utils.big_uint import BigUInt
from chainpulse.utils.exceptions import ChainReceiptUnavailable
from chainpulse.utils.security import mask_address, mask_tx_hash


@dataclass(frozen=True)
class DecodedLog:
    """One decoded contract log."""

    event_name: str
    args: dict[str, Any] = field(hash=False)
    tx_hash: str
    block_number: int
    log_index: int


@dataclass(frozen=True)
class TransactionReceipt:
    gas_used: BigUInt
    gas_price: BigUInt | None = None


class ChainConnection(Protocol):
    """Per-chain connection used by the listener."""

    chain_id: int

    def subscribe(self, address: str, abi: list[dict[str, Any]]) -> AsyncIterator[DecodedLog]:
        """Stream all events of a contract in log order."""
        ...

    async def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt:
        """Resolve gas fields; raises ChainReceiptUnavailable."""
        ...

    async def close(self) -> None:
        ...


def to_json_safe(value: Any) -> Any:
    """Convert decoded ABI values to JSON-compatible values."""
    if isinstance(value, bytes):
        return Web3.to_hex(value)
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    return value


class Web3ChainConnection:
    """
    HTTP polling connection for one chain.

    Each subscription starts at the next block, polls every
    ``poll_interval`` seconds and fetches logs in chunks of at most
    ``chunk_size`` blocks. A failed chunk is retried on the next poll.
    """

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
        poll_interval: float = 3.0,
        chunk_size: int = 2000,
        timeout: int = 30,
        max_workers: int = 4,
        w3: Web3 | None = None,
    ) -> None:
        """
        Initialize connection.

        Args:
            chain_id: Chain id served by rpc_url
            rpc_url: HTTP RPC endpoint
            poll_interval: Seconds between polls
            chunk_size: Max blocks per eth_getLogs call
            timeout: HTTP timeout in seconds
            max_workers: Thread pool size for sync web3 calls
            w3: Preconfigured Web3 instance
        """
        self.chain_id = chain_id
        self.poll_interval = poll_interval
        self.chunk_size = chunk_size
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=f"web3-{chain_id}",
        )

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    async def _block_number(self) -> int:
        return await self._run(lambda: self.w3.eth.block_number)

    async def _start_block(self) -> int:
        while True:
            try:
                return await self._block_number()
            except Exception as e:
                logger.warning(f"[Listener] Chain {self.chain_id} block number error: {e}")
                await asyncio.sleep(self.poll_interval)

    async def subscribe(
        self, address: str, abi: list[dict[str, Any]]
    ) -> AsyncIterator[DecodedLog]:
        checksum = Web3.to_checksum_address(address)
        contract = self.w3.eth.contract(address=checksum, abi=abi)
        topics = {
            bytes(event_abi_to_log_topic(item)): item["name"]
            for item in abi
            if item.get("type") == "event" and not item.get("anonymous")
        }

        from_block = await self._start_block() + 1
        logger.info(
            f"[Listener] Polling {mask_address(address)} on chain {self.chain_id} "
            f"from block {from_block}"
        )

        while True:
            try:
                latest = await self._block_number()
            except Exception as e:
                logger.warning(f"[Listener] Chain {self.chain_id} block number error: {e}")
                latest = from_block - 1

            while from_block <= latest:
                chunk_end = min(from_block + self.chunk_size - 1, latest)
                try:
                    logs = await self._run(
                        self.w3.eth.get_logs,
                        {"address": checksum, "fromBlock": from_block, "toBlock": chunk_end},
                    )
                except Exception as chunk_error:
                    logger.warning(
                        f"[Listener] Chunk {from_block}-{chunk_end} on chain "
                        f"{self.chain_id} error: {chunk_error}"
                    )
                    break

                for raw in logs:
                    decoded = self._decode(contract, topics, raw)
                    if decoded is not None:
                        yield decoded
                from_block = chunk_end + 1

            await asyncio.sleep(self.poll_interval)

    def _decode(
        self, contract: Any, topics: dict[bytes, str], raw: Any
    ) -> DecodedLog | None:
        raw_topics = raw.get("topics") or []
        if not raw_topics:
            return None
        name = topics.get(bytes(raw_topics[0]))
        if name is None:
            return None
        try:
            event = getattr(contract.events, name)().process_log(raw)
        except Exception as e:
            logger.warning(f"[Listener] Cannot decode {name} log: {e}")
            return None
        return DecodedLog(
            event_name=name,
            args=to_json_safe(dict(event["args"])),
            tx_hash=Web3.to_hex(raw["transactionHash"]),
            block_number=raw["blockNumber"],
            log_index=raw["logIndex"],
        )

    async def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt:
        """
        Fetch gas fields for a transaction.

        Raises:
            ChainReceiptUnavailable: On RPC failure or missing receipt
        """
        try:
            receipt = await self._run(self.w3.eth.get_transaction_receipt, tx_hash)
        except Exception as e:
            raise ChainReceiptUnavailable(self.chain_id, tx_hash, str(e)) from e
        if receipt is None:
            raise ChainReceiptUnavailable(self.chain_id, tx_hash, "no receipt")

        gas_price = receipt.get("effectiveGasPrice")
        logger.debug(f"[Listener] Receipt {mask_tx_hash(tx_hash)}: gas={receipt['gasUsed']}")
        return TransactionReceipt(
            gas_used=BigUInt(receipt["gasUsed"]),
            gas_price=BigUInt(gas_price) if gas_price is not None else None,
        )

    async def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
