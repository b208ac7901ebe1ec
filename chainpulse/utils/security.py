"""
Address helpers.

Normalization for wallet/contract addresses and masking for logs.
"""

from typing import Any


def mask_address(address: str | None) -> str:
    """
    Mask wallet address for logging: 0x1234...5678

    Args:
        address: Wallet address to mask

    Returns:
        Masked address showing first 6 and last 4 characters

    Examples:
        >>> mask_address("0x1234567890abcdef1234567890abcdef12345678")
        '0x1234...5678'
        >>> mask_address(None)
        '***'
    """
    if not address or len(address) < 10:
        return "***"
    return f"{address[:6]}...{address[-4:]}"


def mask_tx_hash(tx_hash: str | None) -> str:
    """Mask transaction hash for logging: 0xabcdef12...3456"""
    if not tx_hash or len(tx_hash) < 16:
        return "***"
    return f"{tx_hash[:10]}...{tx_hash[-4:]}"


def normalize_address(address: str) -> str:
    """Lowercase and strip an address so keys compare consistently."""
    return address.strip().lower()


def normalize_optional_address(address: Any) -> str | None:
    """Normalize an address-like value; anything that is not a non-empty string reads as None."""
    if not isinstance(address, str) or not address.strip():
        return None
    return normalize_address(address)
