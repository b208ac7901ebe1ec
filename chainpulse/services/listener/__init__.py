"""
Blockchain Listener.

Subscribes to contract logs across several chains and drives the event
store and the contract/user aggregators.

Key features:
- One subscription per (chain id, contract address)
- Bounded in-flight handlers (back-pressure on the log stream)
- LRU receipt cache shared by all subscriptions
"""

from .chain_connection import (
    ChainConnection,
    DecodedLog,
    TransactionReceipt,
    Web3ChainConnection,
)
from .core import BlockchainListenerManager, Subscription
from .event_handling_mixin import EventHandlingMixin, extract_wallet
from .receipt_cache import ReceiptCache

__all__ = [
    "BlockchainListenerManager",
    "ChainConnection",
    "DecodedLog",
    "EventHandlingMixin",
    "ReceiptCache",
    "Subscription",
    "TransactionReceipt",
    "Web3ChainConnection",
    "extract_wallet",
]
