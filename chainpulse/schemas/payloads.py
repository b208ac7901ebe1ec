"""
Ingestion payloads.

Validated input for the ingestion entry points consumed by an HTTP layer.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from chainpulse.models.enums import AnalyticsEventType


def _normalize_wallet(v: str | None) -> str | None:
    if v is None or not v.strip():
        return None
    v = v.strip()
    if not v.startswith("0x") or len(v) != 42:
        raise ValueError(
            f"Invalid wallet address: {v}. Must start with 0x and be 42 characters long."
        )
    try:
        int(v[2:], 16)
    except ValueError as exc:
        raise ValueError(f"Invalid wallet address format: {v}") from exc
    return v.lower()


class TrackEventPayload(BaseModel):
    """UI event reported by the frontend."""

    event_type: AnalyticsEventType
    wallet_address: str | None = None
    session_id: str | None = Field(default=None, max_length=64)
    url: str | None = None
    referrer: str | None = None
    element: str | None = Field(default=None, max_length=255)
    action: str | None = Field(default=None, max_length=255)
    value: Any = None
    chain_id: int | None = Field(default=None, gt=0)
    metadata: dict[str, Any] | None = None

    @field_validator("wallet_address")
    @classmethod
    def validate_wallet(cls, v: str | None) -> str | None:
        """Validate and lowercase wallet address."""
        return _normalize_wallet(v)


class StartSessionPayload(BaseModel):
    """Session start reported by the frontend."""

    wallet_address: str | None = None
    entry_page: str | None = None
    referrer: str | None = None
    chain_id: int | None = Field(default=None, gt=0)

    @field_validator("wallet_address")
    @classmethod
    def validate_wallet(cls, v: str | None) -> str | None:
        """Validate and lowercase wallet address."""
        return _normalize_wallet(v)
