"""
Analytics user model.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from chainpulse.models.base import Base
from chainpulse.models.types import BigUIntType, JSONType
from chainpulse.utils.big_uint import BigUInt


class AnalyticsUserModel(Base):
    """Per-wallet cumulative statistics."""

    __tablename__ = "analytics_users"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)

    first_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    total_sessions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_interactions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_transactions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_gas_spent: Mapped[BigUInt] = mapped_column(
        BigUIntType, default=BigUInt(0), nullable=False
    )

    tags: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AnalyticsUser(wallet={self.wallet_address}, "
            f"interactions={self.total_interactions}, tx={self.total_transactions})>"
        )
