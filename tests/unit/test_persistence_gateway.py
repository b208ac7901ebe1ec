"""Unit tests for the dual-backend persistence gateway."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from loguru import logger

from chainpulse.container import initialize_persistence
from chainpulse.storage import InMemoryStore, PersistenceGateway


def _session_maker(session):
    """Async session factory yielding the given mock session."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context)


@pytest.fixture
def warnings_logged():
    """Messages logged at WARNING or above while the test runs."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)


class TestPersistenceGateway:
    """Tests for PersistenceGateway.execute."""

    @pytest.mark.asyncio
    async def test_memory_mode_without_session_maker(self):
        """Gateway without a session maker runs the fallback only."""
        gateway = PersistenceGateway(None)
        durable = AsyncMock(return_value="durable")
        fallback = MagicMock(return_value="memory")

        result = await gateway.execute(durable, fallback, "test")

        assert result == "memory"
        assert gateway.mode == "memory"
        durable.assert_not_called()
        fallback.assert_called_once_with(gateway.memory)

    @pytest.mark.asyncio
    async def test_durable_success_commits(self, mock_session):
        """Successful durable op commits and skips the fallback."""
        gateway = PersistenceGateway(_session_maker(mock_session))
        durable = AsyncMock(return_value="durable")
        fallback = MagicMock(return_value="memory")

        result = await gateway.execute(durable, fallback, "test")

        assert result == "durable"
        assert gateway.mode == "durable"
        durable.assert_awaited_once_with(mock_session)
        mock_session.commit.assert_awaited_once()
        fallback.assert_not_called()

    @pytest.mark.asyncio
    async def test_durable_failure_runs_fallback_once(self, mock_session):
        """A throwing durable op rolls back and runs the fallback exactly once."""
        gateway = PersistenceGateway(_session_maker(mock_session))
        durable = AsyncMock(side_effect=ConnectionError("db down"))
        fallback = MagicMock(return_value="memory")

        result = await gateway.execute(durable, fallback, "test")

        assert result == "memory"
        durable.assert_awaited_once()
        fallback.assert_called_once()
        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_disable_durable(self, mock_session):
        """Disabled gateway never touches the durable backend."""
        maker = _session_maker(mock_session)
        gateway = PersistenceGateway(maker)
        gateway.disable_durable()

        result = await gateway.execute(AsyncMock(), lambda store: 1, "test")

        assert result == 1
        assert gateway.mode == "memory"
        maker.assert_not_called()

    @pytest.mark.asyncio
    async def test_disabled_flag(self, mock_session):
        """enabled=False behaves as memory mode."""
        gateway = PersistenceGateway(_session_maker(mock_session), enabled=False)
        assert gateway.durable_enabled is False
        assert gateway.mode == "memory"

    def test_memory_is_lazy_and_shared(self):
        """Memory store is created once on first use."""
        gateway = PersistenceGateway(None)
        assert gateway._memory is None
        store = gateway.memory
        assert isinstance(store, InMemoryStore)
        assert gateway.memory is store

    def test_uses_provided_memory(self, memory_store):
        """Provided memory store is used as-is."""
        gateway = PersistenceGateway(None, memory=memory_store)
        assert gateway.memory is memory_store


class TestFallbackNotice:
    """Tests for the single fallback warning."""

    @pytest.mark.asyncio
    async def test_disable_then_execute_warns_once(self, mock_session, warnings_logged):
        """Disabling and then falling back repeatedly logs one warning."""
        gateway = PersistenceGateway(_session_maker(mock_session))
        gateway.disable_durable("unhealthy")

        for _ in range(3):
            await gateway.execute(AsyncMock(), lambda store: None, "test")

        assert len(warnings_logged) == 1
        assert "falling back" in warnings_logged[0]

    @pytest.mark.asyncio
    async def test_repeated_failures_warn_once(self, mock_session, warnings_logged):
        """Durable failures after the first log at debug only."""
        gateway = PersistenceGateway(_session_maker(mock_session))
        durable = AsyncMock(side_effect=ConnectionError("db down"))

        for _ in range(3):
            await gateway.execute(durable, lambda store: None, "test")
        gateway.disable_durable()

        assert len(warnings_logged) == 1
        assert "db down" in warnings_logged[0]

    @pytest.mark.asyncio
    async def test_unhealthy_startup_warns_once(self, warnings_logged):
        """An unreachable database at startup produces one warning."""
        gateway = PersistenceGateway(_session_maker(AsyncMock()))
        engine = MagicMock()
        engine.connect.side_effect = ConnectionError("refused")
        services = MagicMock(engine=engine, gateway=gateway)

        await initialize_persistence(services)
        await gateway.execute(AsyncMock(), lambda store: None, "test")

        assert gateway.mode == "memory"
        assert len(warnings_logged) == 1
