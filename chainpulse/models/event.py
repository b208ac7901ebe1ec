"""
Analytics event model.

One append-only table for both on-chain contract events and off-chain UI
events. Contract-only and UI-only columns are nullable.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chainpulse.models.base import Base
from chainpulse.models.types import BigUIntType, JSONType
from chainpulse.utils.big_uint import BigUInt


class AnalyticsEvent(Base):
    """
    Ingested analytics event.

    ``seq`` preserves insertion order; ``id`` is the public identifier.
    """

    __tablename__ = "analytics_events"
    __table_args__ = (
        Index("ix_analytics_events_type_timestamp", "event_type", "timestamp"),
        Index("ix_analytics_events_contract_timestamp", "contract_address", "timestamp"),
        Index("ix_analytics_events_wallet_timestamp", "wallet_address", "timestamp"),
    )

    # Primary key (insertion order)
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    # Common
    wallet_address: Mapped[str | None] = mapped_column(String(42), nullable=True)
    chain_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    # Contract event fields
    contract_address: Mapped[str | None] = mapped_column(String(42), nullable=True)
    event_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(66), nullable=True, index=True)
    block_number: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    log_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gas_used: Mapped[BigUInt | None] = mapped_column(BigUIntType, nullable=True)
    gas_price: Mapped[BigUInt | None] = mapped_column(BigUIntType, nullable=True)
    event_args: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    # UI event fields
    session_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    referrer: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    element: Mapped[str | None] = mapped_column(String(255), nullable=True)
    action: Mapped[str | None] = mapped_column(String(255), nullable=True)
    value: Mapped[Any] = mapped_column(JSONType, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AnalyticsEvent(id={self.id}, type={self.event_type}, "
            f"contract={self.contract_address}, ts={self.timestamp})>"
        )
