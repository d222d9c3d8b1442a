"""
Module: inventory_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and the unit-of-work scope every stock mutation runs in.  This is the
    single point of database connection configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/ and exceptions.
    MUST NOT import from services/, selectors/, or domain/ (except for
    create_tables/drop_tables which import models and listeners).

Invariants enforced:
    - PostgreSQL is the production backend: READ COMMITTED isolation with
      explicit row-level locking (FOR UPDATE) on stock rows and transaction
      headers, and a per-unit-of-work ``lock_timeout``.
    - SQLite is accepted for local runs and the default test suite.  It
      serialises writers at the database level, so FOR UPDATE compiles to
      nothing and the per-unit-of-work ``busy_timeout`` bounds the wait for
      the database write lock instead.
    - unit_of_work() commits on normal exit and rolls back on EVERY other
      exit path, re-raising the original (typed) exception.  No partial
      effect set is ever committed.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
    - LockTimeoutError when the backend reports a lock wait past the bound.
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.
"""

import atexit
from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from inventory_kernel.exceptions import LockTimeoutError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.engine")

DEFAULT_LOCK_TIMEOUT_MS = 5000

# PostgreSQL SQLSTATE for lock_not_available (raised when lock_timeout fires)
_PG_LOCK_NOT_AVAILABLE = "55P03"

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level _engine and _SessionFactory are initialized.
        All subsequent get_engine/get_session calls use this engine.

    Args:
        database_url: PostgreSQL (production) or SQLite (local) URL.
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        lock_timeout_ms: SQLite only -- connect-time busy timeout, used by
            sessions outside unit_of_work().  Every unit of work sets its
            own bound.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite"):
        kwargs: dict = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": lock_timeout_ms / 1000,
            },
        }
        if ":memory:" in database_url or database_url.rstrip("/") in (
            "sqlite:",
            "sqlite+pysqlite:",
        ):
            kwargs["poolclass"] = StaticPool
        _engine = create_engine(database_url, echo=echo, **kwargs)
        event.listen(_engine, "connect", _sqlite_on_connect)
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )

    return _engine


def _sqlite_on_connect(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Useful for multi-threaded request handlers: each worker creates its own
    session (and therefore its own unit of work).

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a plain transactional scope around a series of operations.

    Used for master-data maintenance and read-mostly work.  Stock mutations
    go through unit_of_work(), which also bounds lock waits.
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def is_lock_timeout(exc: BaseException) -> bool:
    """True when a DBAPI error means a lock wait exceeded its bound."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    if getattr(orig, "pgcode", None) == _PG_LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(orig).lower()


def apply_lock_timeout(session: Session, lock_timeout_ms: int) -> None:
    """
    Bound row-lock waits for the remainder of the session's transaction.

    On PostgreSQL this is ``SET LOCAL lock_timeout`` (via set_config with
    is_local=true), so the setting dies with the transaction.  On SQLite it
    is ``PRAGMA busy_timeout`` on the session's connection, which bounds the
    wait for the database write lock; the next unit of work on a pooled
    connection sets it again.  Either way LockTimeoutError reports the
    bound that was applied here.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        session.execute(
            text("SELECT set_config('lock_timeout', :value, true)"),
            {"value": f"{int(lock_timeout_ms)}ms"},
        )
    elif dialect == "sqlite":
        # PRAGMA takes no bind parameters
        session.execute(text(f"PRAGMA busy_timeout = {int(lock_timeout_ms)}"))


@contextmanager
def unit_of_work(
    session_factory: Callable[[], Session] | None = None,
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
) -> Generator[Session, None, None]:
    """
    Run a block as one atomic, all-or-nothing database transaction.

    Preconditions: a session factory is given, or the module engine has been
        initialized via init_engine_from_url().
    Postconditions: On normal exit, pending changes are flushed and
        committed.  On any exception the transaction is rolled back, the
        session is closed, and the exception is re-raised.  Backend lock
        wait failures surface as LockTimeoutError; everything else
        (InsufficientStockError, TransactionNotFoundError, ...) propagates
        unchanged.

    Usage:
        with unit_of_work(factory, lock_timeout_ms=5000) as session:
            ledger = StockLedgerService(session)
            ledger.apply_delta(...)
    """
    factory = session_factory or get_session_factory()
    session = factory()
    logger.debug("unit_of_work_started", extra={"lock_timeout_ms": lock_timeout_ms})
    try:
        apply_lock_timeout(session, lock_timeout_ms)
        yield session
        session.flush()
        session.commit()
        logger.debug("unit_of_work_committed")
    except DBAPIError as exc:
        session.rollback()
        if is_lock_timeout(exc):
            logger.warning(
                "unit_of_work_lock_timeout",
                extra={"lock_timeout_ms": lock_timeout_ms},
            )
            raise LockTimeoutError("database row", lock_timeout_ms) from exc
        logger.error("unit_of_work_rolled_back", exc_info=True)
        raise
    except Exception:
        session.rollback()
        logger.warning("unit_of_work_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """
    Create all kernel tables.

    Preconditions: Engine must be initialized (or passed explicitly).
    Postconditions: All tables exist; ORM immutability listeners are
        registered.
    """
    from inventory_kernel.db.base import Base
    from inventory_kernel.db.immutability import register_immutability_listeners

    # Import models so Base.metadata discovers their tables
    import inventory_kernel.models  # noqa: F401

    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    register_immutability_listeners()


def drop_tables(engine: Engine | None = None) -> None:
    """
    Drop all tables. Use with caution - primarily for testing.
    """
    from inventory_kernel.db.base import Base

    import inventory_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """
    Reset the engine and session factory.

    Useful for test cleanup.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"
