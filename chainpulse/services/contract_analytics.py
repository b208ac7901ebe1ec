"""
Contract analytics aggregator.

Maintains cumulative per-contract counters. Read-modify-write sequences on
one contract are serialized by a per-address lock.
"""

from datetime import datetime
from typing import Any

from loguru import logger

from chainpulse.repositories.contract_repository import ContractRepository
from chainpulse.schemas.records import ContractAnalytics
from chainpulse.utils.big_uint import ZERO, BigUInt
from chainpulse.utils.datetime_utils import ensure_utc, utc_now
from chainpulse.utils.keyed_lock import KeyedLock
from chainpulse.utils.security import (
    mask_address,
    normalize_address,
    normalize_optional_address,
)


class ContractAnalyticsAggregator:
    """Per-contract interaction statistics."""

    def __init__(self, repository: ContractRepository, locks: KeyedLock | None = None) -> None:
        """
        Initialize aggregator.

        Args:
            repository: Contract repository
            locks: Shared per-key lock registry
        """
        self.repository = repository
        self.locks = locks or KeyedLock()

    async def get_or_create(
        self,
        address: str,
        name: str | None = None,
        type: str | None = None,
        deployed_at: datetime | None = None,
        deployer_address: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ContractAnalytics:
        """
        Get contract analytics, creating a zeroed record on first sighting.

        Safe to call concurrently for the same address.

        Args:
            address: Contract address
            name: Contract name
            type: Contract type
            deployed_at: Deployment time
            deployer_address: Deployer wallet
            metadata: Extra data

        Returns:
            Stored record
        """
        address = normalize_address(address)
        record = ContractAnalytics(
            address=address,
            name=name,
            type=type,
            deployed_at=ensure_utc(deployed_at),
            deployer_address=normalize_optional_address(deployer_address),
            last_interaction=utc_now(),
            gas_used=ZERO,
            events={},
            metadata=metadata,
        )
        async with self.locks.hold(f"contract:{address}"):
            return await self.repository.get_or_create(record)

    async def update(
        self,
        address: str,
        event_name: str,
        wallet_address: str | None = None,
        gas_used: BigUInt | str | int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ContractAnalytics | None:
        """
        Record one interaction with a contract.

        Increments total interactions, counts the wallet once per contract,
        adds gas, bumps the per-event counter and merges metadata.

        Returns:
            Updated record, or None if the contract was never created
        """
        address = normalize_address(address)
        wallet = normalize_optional_address(wallet_address)
        gas = BigUInt.parse(gas_used) if gas_used is not None else None

        async with self.locks.hold(f"contract:{address}"):
            updated = await self.repository.record_interaction(
                address, event_name, wallet, gas, metadata, utc_now()
            )

        if updated is None:
            logger.warning(f"[Contracts] Contract analytics not found for {mask_address(address)}")
        return updated

    async def get_by_address(self, address: str) -> ContractAnalytics | None:
        return await self.repository.get_by_key(normalize_address(address))

    async def get_all(self) -> list[ContractAnalytics]:
        """All contracts, most interactions first."""
        return await self.repository.find_by_interactions()

    async def get_top(self, limit: int = 10) -> list[ContractAnalytics]:
        """Top contracts by total interactions."""
        return await self.repository.find_by_interactions(limit=limit)
