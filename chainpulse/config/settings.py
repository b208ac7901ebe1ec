"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

import json

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chainpulse.config.constants import (
    CHAIN_ID_BASE,
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_POLYGON,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str | None = None
    database_enabled: bool = True
    use_in_memory_db: bool = False  # Force the in-memory fallback backend
    database_echo: bool = False

    # Blockchain RPC Providers
    eth_mainnet_rpc: str | None = None
    polygon_mainnet_rpc: str | None = None
    base_mainnet_rpc: str | None = None
    extra_chain_rpcs: dict[int, str] = Field(
        default_factory=dict,
        description="JSON map of chain id -> RPC URL for additional chains"
    )

    # Listener
    watched_contracts_file: str | None = Field(
        default=None,
        description="JSON file listing statically watched contracts"
    )
    blockchain_poll_interval: float = Field(
        default=3.0,
        gt=0,
        description="Seconds between log polls per subscription"
    )
    log_chunk_size: int = Field(
        default=2000,
        gt=0,
        description="Maximum block span per eth_getLogs call"
    )
    rpc_timeout: int = Field(
        default=30,
        gt=0,
        description="RPC provider HTTP timeout in seconds"
    )
    listener_max_concurrent_handlers: int = Field(
        default=32,
        gt=0,
        description="Maximum in-flight log handlers per process"
    )
    receipt_cache_size: int = Field(
        default=1024,
        ge=0,
        description="LRU size of the transaction receipt cache"
    )

    # Snapshots
    snapshot_hour_utc: int = Field(default=0, ge=0, le=23)
    snapshot_minute_utc: int = Field(default=5, ge=0, le=59)

    # Redis (dramatiq broker)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Logging
    log_level: str = "INFO"
    log_file: str = "logs/analytics.log"

    # Environment
    environment: str = "production"
    debug: bool = False

    # Health server
    health_check_port: int = 8081

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str | None) -> str | None:
        """Validate database URL and normalize plain postgresql:// to asyncpg."""
        if not v:
            return None
        if v.startswith('postgresql://'):
            return 'postgresql+asyncpg://' + v[len('postgresql://'):]
        if not v.startswith(('postgresql+asyncpg://', 'sqlite+aiosqlite://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql://, '
                'postgresql+asyncpg:// or sqlite+aiosqlite://'
            )
        return v

    @field_validator('extra_chain_rpcs', mode='before')
    @classmethod
    def parse_extra_chain_rpcs(cls, v: object) -> object:
        """Accept a JSON string as well as a mapping."""
        if isinstance(v, str):
            if not v.strip():
                return {}
            try:
                return json.loads(v)
            except json.JSONDecodeError as exc:
                raise ValueError(f'EXTRA_CHAIN_RPCS is not valid JSON: {exc}') from exc
        return v

    @field_validator('extra_chain_rpcs')
    @classmethod
    def validate_extra_chain_rpcs(cls, v: dict[int, str]) -> dict[int, str]:
        """Chain ids must be positive integers."""
        for chain_id in v:
            if chain_id <= 0:
                raise ValueError(f'Invalid chain id in EXTRA_CHAIN_RPCS: {chain_id}')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        return v.upper()

    @model_validator(mode='after')
    def validate_production(self) -> 'Settings':
        """Validate production-specific requirements."""
        if self.environment == 'production':
            if self.debug:
                raise ValueError(
                    'DEBUG must be False in production environment. '
                    'Set DEBUG=false in your .env file.'
                )
            if not self.durable_backend_configured:
                logger.warning(
                    'No durable database configured in production; '
                    'analytics will be kept in memory only.'
                )
        return self

    @property
    def durable_backend_configured(self) -> bool:
        """True only when a URL is set, the backend is enabled and memory is not forced."""
        return bool(self.database_url) and self.database_enabled and not self.use_in_memory_db

    def get_chain_rpc_urls(self) -> dict[int, str]:
        """Merge named RPC URLs with EXTRA_CHAIN_RPCS (extra entries win)."""
        result: dict[int, str] = {}
        named = {
            CHAIN_ID_ETHEREUM: self.eth_mainnet_rpc,
            CHAIN_ID_POLYGON: self.polygon_mainnet_rpc,
            CHAIN_ID_BASE: self.base_mainnet_rpc,
        }
        for chain_id, url in named.items():
            if url:
                result[chain_id] = url
        result.update(self.extra_chain_rpcs)
        return result


# Global settings instance
settings = Settings()
