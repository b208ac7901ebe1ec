"""
Daily snapshot model.
"""

from datetime import date
from typing import Any

from sqlalchemy import Date, Float, Integer
from sqlalchemy.orm import Mapped, mapped_column

from chainpulse.models.base import Base
from chainpulse.models.types import BigUIntType, JSONType
from chainpulse.utils.big_uint import BigUInt


class DailySnapshotModel(Base):
    """One recomputable rollup per UTC calendar day."""

    __tablename__ = "analytics_daily_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_date: Mapped[date] = mapped_column(
        "date", Date, nullable=False, unique=True, index=True
    )

    new_users: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active_users: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_sessions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_session_duration: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_transactions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_gas_used: Mapped[BigUInt] = mapped_column(
        BigUIntType, default=BigUInt(0), nullable=False
    )

    # [{"address", "name", "interactions"}], [{"event_type", "count"}]
    top_contracts: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, default=list, nullable=False
    )
    top_events: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, default=list, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<DailySnapshot(date={self.snapshot_date}, active={self.active_users})>"
