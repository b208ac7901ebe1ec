"""
Static chain/contract wiring.

Reads the watched-contracts JSON file into (chain, contract, abi) triples
the listener subscribes to on start.

File format::

    [
        {
            "name": "SoulIdentity",
            "type": "Identity",
            "address": "0x...",
            "abi_path": "abis/SoulIdentity.json",
            "chain_ids": [1, 137]
        }
    ]
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from chainpulse.config.settings import Settings
from chainpulse.utils.exceptions import ValidationError
from chainpulse.utils.security import mask_address, normalize_address


@dataclass(frozen=True)
class WatchedContract:
    """One contract to listen to on one chain."""

    chain_id: int
    address: str
    abi: list[dict[str, Any]] = field(hash=False, compare=False)
    name: str | None = None
    type: str | None = None


def _load_abi(abi_path: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(abi_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read ABI {abi_path}: {e}") from e

    # Hardhat/Truffle artifacts wrap the ABI
    if isinstance(data, dict) and "abi" in data:
        data = data["abi"]
    if not isinstance(data, list):
        raise ValidationError(f"ABI {abi_path} must be a JSON list")
    return data


def _validate_address(address: Any, index: int) -> str:
    if not isinstance(address, str) or not address.startswith("0x") or len(address) != 42:
        raise ValidationError(f"Watched contract #{index}: invalid address {address!r}")
    try:
        int(address[2:], 16)
    except ValueError as e:
        raise ValidationError(f"Watched contract #{index}: invalid address {address!r}") from e
    return normalize_address(address)


def load_watched_contracts(settings: Settings) -> list[WatchedContract]:
    """
    Load statically watched contracts.

    Args:
        settings: Application settings

    Returns:
        One entry per listed chain id that has an RPC configured

    Raises:
        ValidationError: If the file or one of its entries is malformed
    """
    if not settings.watched_contracts_file:
        return []

    path = Path(settings.watched_contracts_file)
    try:
        entries = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read watched contracts file {path}: {e}") from e

    if not isinstance(entries, list):
        raise ValidationError(f"Watched contracts file {path} must contain a JSON list")

    configured_chains = settings.get_chain_rpc_urls()
    result: list[WatchedContract] = []

    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValidationError(f"Watched contract #{index} must be an object")

        address = _validate_address(entry.get("address"), index)
        abi_path = entry.get("abi_path")
        if not abi_path:
            raise ValidationError(f"Watched contract #{index}: abi_path is required")
        abi = _load_abi(path.parent / abi_path)

        chain_ids = entry.get("chain_ids") or list(configured_chains)
        for chain_id in chain_ids:
            if not isinstance(chain_id, int) or isinstance(chain_id, bool):
                raise ValidationError(f"Watched contract #{index}: invalid chain id {chain_id!r}")
            if chain_id not in configured_chains:
                logger.warning(
                    f"[Config] Skipping {mask_address(address)} on chain {chain_id}: "
                    f"no RPC configured"
                )
                continue
            result.append(
                WatchedContract(
                    chain_id=chain_id,
                    address=address,
                    abi=abi,
                    name=entry.get("name"),
                    type=entry.get("type"),
                )
            )

    logger.info(f"[Config] Loaded {len(result)} watched contract subscriptions from {path}")
    return result
