"""
Receipt cache.

LRU cache of transaction receipts keyed by (chain id, tx hash), so several
logs emitted by one transaction cost one receipt lookup.
"""

from cachetools import LRUCache

from chainpulse.services.listener.chain_connection import TransactionReceipt


class ReceiptCache:
    """Bounded LRU of receipts; a non-positive size disables caching."""

    def __init__(self, max_size: int = 1024) -> None:
        self.max_size = max_size
        self._items: LRUCache | None = LRUCache(maxsize=max_size) if max_size > 0 else None

    def get(self, chain_id: int, tx_hash: str) -> TransactionReceipt | None:
        if self._items is None:
            return None
        return self._items.get((chain_id, tx_hash.lower()))

    def put(self, chain_id: int, tx_hash: str, receipt: TransactionReceipt) -> None:
        if self._items is None:
            return
        self._items[(chain_id, tx_hash.lower())] = receipt

    def __len__(self) -> int:
        return len(self._items) if self._items is not None else 0
