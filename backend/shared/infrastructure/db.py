"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns (sync Session, one transaction per operation).

Every call into the store is bounded: pool checkout, connection setup and
(PostgreSQL) individual statements all carry timeouts from settings. A
timeout or lost connection surfaces as PersistenceUnavailableError, which
callers may retry.
"""

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from shared.config.settings import settings, DATABASE_URL
from shared.config.logging import get_logger
from shared.utils.exceptions import PersistenceUnavailableError

logger = get_logger(__name__)


def _enable_sqlite_transactions(engine: Engine, begin_statement: str) -> None:
    """
    Let SQLAlchemy own BEGIN on SQLite.

    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINT and lets two writers read the same row before either locks
    the file. Emitting BEGIN ourselves fixes both; "BEGIN IMMEDIATE" takes
    the write lock up front for multi-threaded use.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql(begin_statement)


def create_db_engine(
    url: str | None = None,
    sqlite_begin: str = "BEGIN",
) -> Engine:
    """
    Build an engine for the given URL (defaults to DATABASE_URL).

    SQLite is supported for development and tests; an in-memory database
    shares a single connection so every Session sees the same data.
    """
    url = url or DATABASE_URL

    if url.startswith("sqlite"):
        in_memory = ":memory:" in url or url.rstrip("/") == "sqlite:"
        kwargs: dict = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.db_connect_timeout,  # busy timeout, seconds
            },
        }
        if in_memory:
            kwargs["poolclass"] = StaticPool
        sqlite_engine = create_engine(url, **kwargs)
        _enable_sqlite_transactions(sqlite_engine, sqlite_begin)
        return sqlite_engine

    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,  # Wait max N seconds for a pooled connection
        pool_recycle=1800,  # Recycle connections after 30 minutes
        connect_args={
            "connect_timeout": settings.db_connect_timeout,
            "options": f"-c statement_timeout={settings.db_statement_timeout_ms}",
        },
        echo=False,
    )


engine = create_db_engine()

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/sessions")
        def list_sessions(db: Session = Depends(get_db)):
            ...

    The session is automatically closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI (CLI, seed).

    Usage:
        with get_db_context() as db:
            db.scalars(select(VenueTable)).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


@contextmanager
def transaction_scope(db: Session, operation: str) -> Iterator[Session]:
    """
    Run one logical operation as a single transaction.

    Commits when the block exits normally. On any error the transaction is
    rolled back before the error propagates, so no operation is ever left
    half-applied. Store timeouts and connection failures are re-raised as
    PersistenceUnavailableError (retryable).

    Usage:
        with transaction_scope(db, "attach_order"):
            ...
    """
    try:
        yield db
        db.commit()
    except (OperationalError, PoolTimeoutError) as exc:
        db.rollback()
        logger.error(
            "Persistence call failed, transaction rolled back",
            operation=operation,
            error=str(exc.orig) if getattr(exc, "orig", None) is not None else str(exc),
        )
        raise PersistenceUnavailableError(operation) from exc
    except Exception:
        db.rollback()
        raise
