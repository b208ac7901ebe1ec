"""
Analytics session model.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chainpulse.models.base import Base
from chainpulse.models.types import JSONType


class AnalyticsSessionModel(Base):
    """Browsing session; mutable only while is_active."""

    __tablename__ = "analytics_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    wallet_address: Mapped[str | None] = mapped_column(String(42), nullable=True, index=True)

    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(BigInteger, nullable=True)  # milliseconds
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    entry_page: Mapped[str | None] = mapped_column(Text, nullable=True)
    exit_page: Mapped[str | None] = mapped_column(Text, nullable=True)
    page_views: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    interactions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    chain_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    referrer: Mapped[str | None] = mapped_column(Text, nullable=True)
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AnalyticsSession(id={self.id}, wallet={self.wallet_address}, "
            f"active={self.is_active})>"
        )
