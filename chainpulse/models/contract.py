"""
Contract analytics models.

ContractAnalyticsModel holds cumulative per-contract counters.
ContractWallet is the (contract, wallet) junction whose row count is the
contract's unique-user figure.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from chainpulse.models.base import Base
from chainpulse.models.types import BigUIntType, JSONType
from chainpulse.utils.big_uint import BigUInt


class ContractAnalyticsModel(Base):
    """Per-contract cumulative statistics."""

    __tablename__ = "analytics_contracts"

    address: Mapped[str] = mapped_column(String(42), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    deployed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deployer_address: Mapped[str | None] = mapped_column(String(42), nullable=True)

    total_interactions: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, index=True
    )
    unique_users: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_interaction: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    gas_used: Mapped[BigUInt] = mapped_column(BigUIntType, default=BigUInt(0), nullable=False)

    # eventName -> count
    events: Mapped[dict[str, int]] = mapped_column(JSONType, default=dict, nullable=False)
    extra_data: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ContractAnalytics(address={self.address}, name={self.name}, "
            f"interactions={self.total_interactions}, unique={self.unique_users})>"
        )


class ContractWallet(Base):
    """Distinct wallet seen interacting with a contract."""

    __tablename__ = "analytics_contract_wallets"
    __table_args__ = (
        UniqueConstraint(
            "contract_address", "wallet_address", name="uq_contract_wallet"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False)
    first_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ContractWallet(contract={self.contract_address}, wallet={self.wallet_address})>"
