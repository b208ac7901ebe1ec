"""
Exception taxonomy for the analytics pipeline.

Ingestion-path failures are isolated per event and logged; query-path
failures propagate to the caller.
"""


class AnalyticsError(Exception):
    """Base class for analytics errors."""


class DurableStoreUnavailable(AnalyticsError):
    """Durable backend is not configured, disabled, or failed an operation.

    Handled inside PersistenceGateway, never surfaced to callers.
    """


class NotFound(AnalyticsError):
    """Target aggregate or session does not exist."""

    def __init__(self, entity: str, key: str) -> None:
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class ValidationError(AnalyticsError):
    """Malformed date, period, address or configuration input."""


class ChainReceiptUnavailable(AnalyticsError):
    """Transaction receipt could not be resolved for a log."""

    def __init__(self, chain_id: int, tx_hash: str, reason: str = "") -> None:
        message = f"Receipt unavailable for {tx_hash} on chain {chain_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.chain_id = chain_id
        self.tx_hash = tx_hash


class NoProviderForChain(AnalyticsError):
    """No chain connection is configured for the requested chain id."""

    def __init__(self, chain_id: int) -> None:
        super().__init__(f"No provider available for chain ID {chain_id}")
        self.chain_id = chain_id
