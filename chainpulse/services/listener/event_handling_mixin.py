"""
Listener Event Handling Mixin.

Turns one decoded log into a stored ContractEvent plus contract and user
aggregate updates.
"""

from typing import Any

from loguru import logger

from chainpulse.config.constants import WALLET_ARG_PRIORITY
from chainpulse.schemas.records import ContractEvent
from chainpulse.services.listener.chain_connection import DecodedLog, TransactionReceipt
from chainpulse.utils.exceptions import ChainReceiptUnavailable
from chainpulse.utils.security import mask_address, mask_tx_hash, normalize_optional_address


def extract_wallet(args: dict[str, Any]) -> str | None:
    """
    Wallet-like address from decoded event args, by priority user, owner, from.

    Examples:
        >>> extract_wallet({"from": "0xAbC0000000000000000000000000000000000001"})
        '0xabc0000000000000000000000000000000000001'
    """
    for name in WALLET_ARG_PRIORITY:
        wallet = normalize_optional_address(args.get(name))
        if wallet:
            return wallet
    return None


class EventHandlingMixin:
    """Mixin providing per-log handling."""

    async def _resolve_receipt(self, chain_id: int, tx_hash: str) -> TransactionReceipt | None:
        cached = self.receipt_cache.get(chain_id, tx_hash)
        if cached is not None:
            return cached

        try:
            receipt = await self.connections[chain_id].get_transaction_receipt(tx_hash)
        except ChainReceiptUnavailable as e:
            logger.warning(f"[Listener] {e}; storing event without gas fields")
            return None

        self.receipt_cache.put(chain_id, tx_hash, receipt)
        return receipt

    async def handle_log(self, chain_id: int, address: str, log: DecodedLog) -> bool:
        """
        Process one received log.

        Failures are logged and never propagate to the subscription.

        Args:
            chain_id: Chain the log came from
            address: Contract address (lowercase)
            log: Decoded log

        Returns:
            True if the log was fully processed
        """
        try:
            receipt = await self._resolve_receipt(chain_id, log.tx_hash)
            wallet = extract_wallet(log.args)

            event = ContractEvent(
                contract_address=address,
                event_name=log.event_name,
                tx_hash=log.tx_hash,
                block_number=log.block_number,
                log_index=log.log_index,
                chain_id=chain_id,
                event_args=dict(log.args),
                wallet_address=wallet,
                gas_used=receipt.gas_used if receipt else None,
                gas_price=receipt.gas_price if receipt else None,
            )
            await self.events.store(event)
            await self.contracts.update(address, log.event_name, wallet, event.gas_used)

            if wallet:
                await self.users.get_or_create(wallet)
                await self.users.update_stats(
                    wallet, new_transaction=True, gas_spent=event.gas_used
                )

            logger.debug(
                f"[Listener] Tracked {log.event_name} on {mask_address(address)} "
                f"(chain {chain_id}, tx {mask_tx_hash(log.tx_hash)})"
            )
            return True

        except Exception as e:
            logger.exception(
                f"[Listener] Error processing {log.event_name} on {mask_address(address)} "
                f"(chain {chain_id}): {e}"
            )
            return False
