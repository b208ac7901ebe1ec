"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment: no durable database, no RPC providers
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = ""
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from chainpulse.config.database import create_engine, create_session_maker, init_schema
from chainpulse.config.settings import Settings
from chainpulse.container import build_services
from chainpulse.storage import InMemoryStore, PersistenceGateway


def make_settings(**overrides) -> Settings:
    """Settings isolated from any .env file."""
    values = {"environment": "test", "database_url": None}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def memory_store():
    """Fresh in-memory store."""
    return InMemoryStore()


@pytest.fixture
def memory_gateway(memory_store):
    """Gateway with no durable backend."""
    return PersistenceGateway(None, memory=memory_store)


@pytest.fixture
def services(memory_store):
    """Analytics service graph on the in-memory backend, no chains configured."""
    settings = make_settings(use_in_memory_db=True)
    return build_services(settings, connections={}, watched=[], memory=memory_store)


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path):
    """File-backed SQLite engine with the analytics schema created."""
    settings = make_settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'analytics.db'}")
    engine = create_engine(settings)
    await init_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def durable_services(sqlite_engine):
    """Analytics service graph on the SQLite durable backend."""
    settings = make_settings(database_url=str(sqlite_engine.url))
    return build_services(
        settings,
        session_maker=create_session_maker(sqlite_engine),
        connections={},
        watched=[],
    )


@pytest.fixture
def wallet_a():
    return "0x742d35cc6634c0532925a3b844bc9e7595f0beb0"


@pytest.fixture
def wallet_b():
    return "0x55d398326f99059ff775485246999027b3197955"


@pytest.fixture
def sample_transaction_hash():
    """Sample transaction hash for testing."""
    return "0x1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef"


@pytest.fixture
def settings_factory():
    """Factory for Settings isolated from any .env file."""
    return make_settings


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.refresh = AsyncMock()
    return session
