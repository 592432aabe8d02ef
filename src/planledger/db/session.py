# src/planledger/db/session.py
from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from planledger.core.config import Settings, settings

# ---------------------------------------------------------------------------
# Engine configuration
#   Built on first use so importing the package never needs a DB driver.
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def build_engine(cfg: Settings = settings) -> AsyncEngine:
    engine_kwargs: dict = {
        "echo": bool(cfg.DB_ECHO),
        "pool_pre_ping": True,  # protects against stale connections
    }
    # NullPool in tests avoids sharing one connection across tasks
    if cfg.TESTING:
        engine_kwargs["poolclass"] = NullPool
    engine = create_async_engine(cfg.DATABASE_URL, **engine_kwargs)
    if engine.dialect.name == "sqlite":
        # SQLite only enforces FOREIGN KEY clauses with the pragma on
        event.listen(engine.sync_engine, "connect", _sqlite_foreign_keys)
    return engine


def _sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


def get_engine() -> AsyncEngine:
    """Expose the engine (e.g., for health checks / pings)."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the app-wide async sessionmaker."""
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = build_sessionmaker(get_engine())
    return _sessionmaker
