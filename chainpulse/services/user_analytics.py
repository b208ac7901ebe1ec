"""
User analytics aggregator.

Maintains cumulative per-wallet counters.
"""

from typing import Any

from loguru import logger

from chainpulse.config.constants import ACTIVE_USER_WINDOW
from chainpulse.repositories.user_repository import UserRepository
from chainpulse.schemas.records import AnalyticsUser
from chainpulse.utils.big_uint import ZERO, BigUInt
from chainpulse.utils.datetime_utils import trailing_window, utc_now
from chainpulse.utils.keyed_lock import KeyedLock
from chainpulse.utils.security import mask_address, normalize_address


class UserAnalyticsAggregator:
    """Per-wallet activity statistics."""

    def __init__(self, repository: UserRepository, locks: KeyedLock | None = None) -> None:
        """
        Initialize aggregator.

        Args:
            repository: User repository
            locks: Shared per-key lock registry
        """
        self.repository = repository
        self.locks = locks or KeyedLock()

    async def get_or_create(
        self, wallet_address: str, metadata: dict[str, Any] | None = None
    ) -> AnalyticsUser:
        """
        Get user, creating a zeroed record on first sighting.

        Args:
            wallet_address: Wallet address
            metadata: Extra data stored on creation

        Returns:
            Stored record
        """
        wallet = normalize_address(wallet_address)
        now = utc_now()
        record = AnalyticsUser(
            wallet_address=wallet,
            first_seen=now,
            last_seen=now,
            total_gas_spent=ZERO,
            metadata=metadata,
        )
        async with self.locks.hold(f"user:{wallet}"):
            return await self.repository.get_or_create(record)

    async def update_stats(
        self,
        wallet_address: str,
        new_session: bool = False,
        new_interaction: bool = False,
        new_transaction: bool = False,
        gas_spent: BigUInt | str | int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AnalyticsUser | None:
        """
        Update user counters and set last_seen to now.

        Args:
            wallet_address: Wallet address
            new_session: Increment total_sessions
            new_interaction: Increment total_interactions
            new_transaction: Increment total_transactions
            gas_spent: Gas to add to total_gas_spent
            metadata: Shallow-merged into stored metadata

        Returns:
            Updated record, or None if the user does not exist
        """
        wallet = normalize_address(wallet_address)
        gas = BigUInt.parse(gas_spent) if gas_spent is not None else None

        async with self.locks.hold(f"user:{wallet}"):
            updated = await self.repository.apply_stats(
                wallet,
                utc_now(),
                new_session=new_session,
                new_interaction=new_interaction,
                new_transaction=new_transaction,
                gas_spent=gas,
                metadata=metadata,
            )

        if updated is None:
            logger.warning(f"[Users] User not found: {mask_address(wallet)}")
        return updated

    async def get_by_wallet(self, wallet_address: str) -> AnalyticsUser | None:
        return await self.repository.get_by_key(normalize_address(wallet_address))

    async def get_all(self) -> list[AnalyticsUser]:
        """All users, most recently seen first."""
        return await self.repository.find_by_last_seen()

    async def get_active_users(self) -> list[AnalyticsUser]:
        """Users seen within the trailing 24 hours."""
        return await self.repository.find_last_seen_since(trailing_window(ACTIVE_USER_WINDOW))

    async def get_new_users(self) -> list[AnalyticsUser]:
        """Users first seen within the trailing 24 hours."""
        return await self.repository.find_first_seen_since(trailing_window(ACTIVE_USER_WINDOW))
