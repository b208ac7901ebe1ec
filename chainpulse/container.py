"""
Service container.

Builds one explicit analytics service graph at startup. Every service
shares a single PersistenceGateway (and so a single in-memory fallback
store) and a single per-key lock registry.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from chainpulse.config.chains import WatchedContract, load_watched_contracts
from chainpulse.config.database import (
    create_engine,
    create_session_maker,
    health_check,
    init_schema,
)
from chainpulse.config.settings import Settings
from chainpulse.repositories import (
    ContractRepository,
    EventRepository,
    SessionRepository,
    SnapshotRepository,
    UserRepository,
)
from chainpulse.services import (
    ContractAnalyticsAggregator,
    EventStore,
    IngestionService,
    RealTimeDashboardComposer,
    SessionTracker,
    SnapshotEngine,
    UserAnalyticsAggregator,
)
from chainpulse.services.listener import (
    BlockchainListenerManager,
    ChainConnection,
    Web3ChainConnection,
)
from chainpulse.storage import InMemoryStore, PersistenceGateway
from chainpulse.utils.keyed_lock import KeyedLock


@dataclass
class AnalyticsServices:
    """Analytics service graph."""

    gateway: PersistenceGateway
    events: EventStore
    contracts: ContractAnalyticsAggregator
    users: UserAnalyticsAggregator
    sessions: SessionTracker
    snapshots: SnapshotEngine
    dashboard: RealTimeDashboardComposer
    ingestion: IngestionService
    listener: BlockchainListenerManager
    engine: AsyncEngine | None = None

    async def close(self) -> None:
        """Stop the listener and dispose the engine."""
        await self.listener.stop()
        if self.engine is not None:
            await self.engine.dispose()


def build_chain_connections(settings: Settings) -> dict[int, ChainConnection]:
    """One Web3 connection per configured chain id."""
    return {
        chain_id: Web3ChainConnection(
            chain_id,
            rpc_url,
            poll_interval=settings.blockchain_poll_interval,
            chunk_size=settings.log_chunk_size,
            timeout=settings.rpc_timeout,
        )
        for chain_id, rpc_url in settings.get_chain_rpc_urls().items()
    }


def build_services(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    connections: dict[int, ChainConnection] | None = None,
    watched: list[WatchedContract] | None = None,
    memory: InMemoryStore | None = None,
) -> AnalyticsServices:
    """
    Build the analytics service graph.

    Args:
        settings: Application settings
        session_maker: Durable session factory (built from settings if None)
        connections: Chain connections (built from settings if None)
        watched: Statically watched contracts (loaded from settings if None)
        memory: Fallback store (created on first use if None)

    Returns:
        AnalyticsServices
    """
    engine = None
    if session_maker is None and settings.durable_backend_configured:
        engine = create_engine(settings)
        session_maker = create_session_maker(engine)

    gateway = PersistenceGateway(
        session_maker,
        enabled=settings.database_enabled and not settings.use_in_memory_db,
        memory=memory,
    )
    locks = KeyedLock()

    event_repo = EventRepository(gateway)
    contract_repo = ContractRepository(gateway)
    user_repo = UserRepository(gateway)
    session_repo = SessionRepository(gateway)
    snapshot_repo = SnapshotRepository(gateway)

    events = EventStore(event_repo)
    contracts = ContractAnalyticsAggregator(contract_repo, locks)
    users = UserAnalyticsAggregator(user_repo, locks)
    sessions = SessionTracker(session_repo, locks)

    if connections is None:
        connections = build_chain_connections(settings)
    if watched is None:
        watched = load_watched_contracts(settings)

    listener = BlockchainListenerManager(
        connections,
        events,
        contracts,
        users,
        watched=watched,
        max_concurrent_handlers=settings.listener_max_concurrent_handlers,
        receipt_cache_size=settings.receipt_cache_size,
    )

    logger.info(
        f"[Container] Analytics services built: persistence={gateway.mode}, "
        f"chains={sorted(connections)}, watched={len(watched)}"
    )

    return AnalyticsServices(
        gateway=gateway,
        events=events,
        contracts=contracts,
        users=users,
        sessions=sessions,
        snapshots=SnapshotEngine(snapshot_repo, event_repo, user_repo, session_repo, contract_repo),
        dashboard=RealTimeDashboardComposer(events, users, sessions, contracts),
        ingestion=IngestionService(events, sessions, users),
        listener=listener,
        engine=engine,
    )


async def initialize_persistence(services: AnalyticsServices) -> None:
    """
    Probe the durable backend and create its schema.

    An unhealthy database is logged and the process continues on the
    in-memory backend.
    """
    if services.engine is None or not services.gateway.durable_enabled:
        logger.info("[Container] Using in-memory analytics storage")
        return

    if not await health_check(services.engine):
        services.gateway.disable_durable("unhealthy")
        return

    try:
        await init_schema(services.engine)
    except Exception as e:
        logger.error(f"[Container] Failed to initialize analytics schema: {e}")
        services.gateway.disable_durable("schema unavailable")
