"""
Async engine, session factory and the transaction boundary used by the
allocation engine.

Row locking
===========

Book and Cancel serialize per event on ``SELECT ... FOR UPDATE`` against the
event row. PostgreSQL does that natively; ``lock_timeout`` bounds the wait.

SQLite (development and tests) has no row locks and silently drops
``FOR UPDATE``. To keep the same guarantee every transaction is opened with
``BEGIN IMMEDIATE``, which takes the database write lock up front. Concurrent
writers queue on the sqlite busy timeout instead of interleaving.

Read-only sessions (``get_read_db``) open a plain deferred ``BEGIN`` and,
with the database in WAL mode, never hold up a writer.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ticketbooth.core.config import get_settings
from ticketbooth.core.exceptions import LockTimeoutError, StorageError
from ticketbooth.core.logging import get_logger
from ticketbooth.db.base import Base

logger = get_logger(__name__)
settings = get_settings()

# PostgreSQL: lock_not_available
_PG_LOCK_NOT_AVAILABLE = "55P03"


def _configure_sqlite(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let the "begin" hook below emit BEGIN instead of the driver
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get("read_only"):
            conn.exec_driver_sql("BEGIN")
        else:
            conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(url: Optional[str] = None) -> AsyncEngine:
    url = url or settings.DATABASE_URL

    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            poolclass=NullPool,
            connect_args={"timeout": settings.DB_LOCK_TIMEOUT_MS / 1000},
        )
        _configure_sqlite(engine)
        return engine

    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


def create_session_factory(bind: AsyncEngine, read_only: bool = False) -> async_sessionmaker[AsyncSession]:
    if read_only:
        bind = bind.execution_options(read_only=True)
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False, autoflush=False)


engine = create_engine()
SessionLocal = create_session_factory(engine)
ReadSessionLocal = create_session_factory(engine, read_only=True)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Services own their transaction boundaries."""
    async with SessionLocal() as session:
        yield session


async def get_read_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for handlers that never write."""
    async with ReadSessionLocal() as session:
        yield session


async def init_models(bind: AsyncEngine) -> None:
    """Create missing tables. Run once at startup; production uses alembic."""
    import ticketbooth.models  # noqa: F401 - register tables on Base.metadata

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_schema_ready")


def is_lock_timeout(exc: OperationalError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == _PG_LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(orig)


@asynccontextmanager
async def atomic(
    db: AsyncSession,
    failure_message: str = "Operation failed",
) -> AsyncIterator[AsyncSession]:
    """
    One unit of work: commit on success, roll back on any exception.

    Domain errors raised inside propagate unchanged after the rollback.
    Database errors become StorageError (LockTimeoutError when the event row
    could not be locked in time) with the driver error attached as cause.
    """
    if db.in_transaction():
        # Close a read-only transaction left open by earlier queries on this session
        await db.commit()

    try:
        async with db.begin():
            yield db
    except OperationalError as exc:
        if is_lock_timeout(exc):
            raise LockTimeoutError("Event is busy, please retry", cause=exc) from exc
        raise StorageError(failure_message, cause=exc) from exc
    except SQLAlchemyError as exc:
        raise StorageError(failure_message, cause=exc) from exc
