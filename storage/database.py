"""
Storage - Database Engine and Sessions.

============================================================
RESPONSIBILITY
============================================================
Manages the SQLAlchemy engine, session factory and transaction
scopes for the news store.

- DATABASE_URL selects the backend (default: local SQLite file)
- Explicit transaction management
- Hard failures on connection or initialization errors

============================================================
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, List, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storage.models.base import Base
from storage.repositories.exceptions import DatabaseConnectionError


load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///news_aggregator.db"

REQUIRED_TABLES = [
    "sources",
    "categories",
    "authors",
    "articles",
    "article_author",
]


class DatabasePersistenceError(Exception):
    """Raised when a transaction scope fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when table creation fails."""
    pass


# =============================================================
# DATABASE ENGINE
# =============================================================

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("DATABASE_URL")
    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")
    return url


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create a SQLAlchemy engine.

    SQLite URLs get thread-shareable connections; in-memory SQLite
    uses a single static connection so every session sees the same
    database.

    Args:
        database_url: Connection URL (default: get_database_url())
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    database_url = database_url or get_database_url()
    logger.info(f"Creating database engine for: {database_url.split('@')[-1]}")

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def enable_foreign_keys(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    else:
        engine = create_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
            echo=echo,
        )

    @event.listens_for(engine, "checkout")
    def on_checkout(dbapi_conn, connection_record, connection_proxy):
        logger.debug("Database connection checked out from pool")

    return engine


def get_engine() -> Engine:
    """Get the process-wide engine, creating it if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Get a session factory.

    With an explicit engine a new factory is returned; otherwise the
    process-wide factory bound to get_engine() is created once.
    """
    global _SessionFactory

    if engine is not None:
        return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )
    return _SessionFactory


def reset_engine() -> None:
    """Dispose the process-wide engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


# =============================================================
# SESSION MANAGEMENT
# =============================================================

@contextmanager
def get_db_session(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Usage:
        with get_db_session() as session:
            session.add(record)
            session.commit()

    On exception the session is rolled back and the error re-raised.
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
    except Exception as e:
        logger.error(f"Session error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction_scope(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs. Database errors are
    re-raised as DatabasePersistenceError; other errors propagate
    unchanged after the rollback.
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================

def verify_database_connection(engine: Optional[Engine] = None) -> bool:
    """
    Verify the database answers a trivial query.

    Raises:
        DatabaseConnectionError: If the connection fails
    """
    engine = engine or get_engine()
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        logger.info("Database connection verified successfully")
        return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(
            repository_name="database",
            operation="connect",
            original_error=str(e),
        ) from e


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all tables defined in the ORM models.

    Raises:
        DatabaseInitializationError: If table creation fails
    """
    engine = engine or get_engine()
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


def verify_required_tables(engine: Optional[Engine] = None) -> List[str]:
    """Return the required tables that are missing (logged as warnings)."""
    engine = engine or get_engine()
    existing = set(inspect(engine).get_table_names())
    missing = []
    for table in REQUIRED_TABLES:
        if table in existing:
            logger.info(f"  [OK] Table verified: {table}")
        else:
            logger.warning(f"  [!!] Table missing: {table}")
            missing.append(table)
    return missing


def initialize_database(engine: Optional[Engine] = None) -> None:
    """
    Full database initialization sequence.

    1. Verify connection
    2. Create tables if not exist
    3. Verify required tables
    """
    engine = engine or get_engine()
    logger.info("Initializing news database")
    try:
        verify_database_connection(engine)
        import storage.models  # noqa: F401
        create_all_tables(engine)
        verify_required_tables(engine)
    except Exception as e:
        logger.critical(f"DATABASE INITIALIZATION FAILED: {e}")
        raise
    logger.info("Database initialization complete")
