"""Database engine, session management, and table creation."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import MaintainboardConfig
from .models.base import Base
from .utils.logging import get_logger

logger = get_logger("database")

_engine = None
_session_factory = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _install_sqlite_pragmas(engine: AsyncEngine, config: MaintainboardConfig) -> None:
    """Apply busy timeout and WAL mode on every new SQLite connection."""
    in_memory = ":memory:" in config.database_url

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout={config.db_busy_timeout_ms}")
        if config.db_wal_mode and not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def get_engine(config: MaintainboardConfig) -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        sqlite = _is_sqlite(config.database_url)
        _engine = create_async_engine(
            config.database_url,
            echo=config.debug,
            pool_pre_ping=True,
            connect_args={"timeout": 30} if sqlite else {},
        )
        if sqlite:
            _install_sqlite_pragmas(_engine, config)
    return _engine


def get_session_factory(config: MaintainboardConfig) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(config), expire_on_commit=False)
    return _session_factory


async def create_tables(config: MaintainboardConfig) -> None:
    """Create the template and override tables if they do not exist."""
    async with get_engine(config).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_tables_ready", dialect=get_engine(config).dialect.name)


async def close_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
