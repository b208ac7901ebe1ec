"""
Persistence gateway.

Runs an operation against the durable backend when it is configured and
enabled, and falls back to the in-memory backend on any error or when
disabled. Neither path is retried.
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chainpulse.config.database import session_scope
from chainpulse.storage.memory import InMemoryStore
from chainpulse.utils.exceptions import DurableStoreUnavailable


T = TypeVar("T")

DurableOp = Callable[[AsyncSession], Awaitable[T]]
FallbackOp = Callable[[InMemoryStore], T]


class PersistenceGateway:
    """
    Dual-backend executor.

    One gateway per process; the "falling back" notice is logged once per
    gateway, per-failure details at debug level.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        enabled: bool = True,
        memory: InMemoryStore | None = None,
    ) -> None:
        """
        Initialize gateway.

        Args:
            session_maker: Durable backend session factory (None = not configured)
            enabled: Master switch for the durable backend
            memory: Fallback store (created lazily on first use if None)
        """
        self._session_maker = session_maker
        self._enabled = enabled
        self._memory = memory
        self._fallback_notice_logged = False

    @property
    def durable_enabled(self) -> bool:
        """True when operations are attempted against the durable backend."""
        return self._session_maker is not None and self._enabled

    @property
    def mode(self) -> str:
        """Current persistence mode: 'durable' or 'memory'."""
        return "durable" if self.durable_enabled else "memory"

    @property
    def memory(self) -> InMemoryStore:
        """Fallback store, initialized on first use."""
        if self._memory is None:
            self._memory = InMemoryStore()
        return self._memory

    def disable_durable(self, reason: str = "disabled") -> None:
        """Route all further operations to the in-memory backend.

        Counts as the process fallback notice, so later fallbacks log at debug.
        """
        if self._enabled and not self._fallback_notice_logged:
            logger.warning(
                f"[Persistence] Durable backend {reason}, falling back to in-memory storage"
            )
        self._fallback_notice_logged = True
        self._enabled = False

    async def execute(
        self,
        durable_op: DurableOp[T],
        fallback_op: FallbackOp[T],
        operation: str = "operation",
    ) -> T:
        """
        Execute operation with automatic fallback.

        Args:
            durable_op: Coroutine function run inside one transaction
            fallback_op: Synchronous function run against the in-memory store
            operation: Name used in log messages

        Returns:
            Result of whichever path ran
        """
        try:
            if not self.durable_enabled:
                raise DurableStoreUnavailable("Durable backend not configured or disabled")
            async with session_scope(self._session_maker) as session:
                return await durable_op(session)
        except Exception as e:
            self._log_fallback(operation, e)

        return fallback_op(self.memory)

    def _log_fallback(self, operation: str, error: Exception) -> None:
        if not self._fallback_notice_logged:
            self._fallback_notice_logged = True
            logger.warning(
                f"[Persistence] Durable backend unavailable ({type(error).__name__}: {error}), "
                f"falling back to in-memory storage"
            )
        else:
            logger.debug(f"[Persistence] {operation} fell back to memory: {error}")
