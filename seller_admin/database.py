"""Database connection and session management."""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create SQLAlchemy engine with connection pooling."""
    url = database_url or get_settings().database_url

    options = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": False,  # Set to True for SQL debugging
    }
    if not url.startswith("sqlite"):
        options.update(pool_size=5, max_overflow=10)

    return create_engine(url, **options)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory whose rows stay readable after commit."""
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory, creating the engine on first use."""
    global _engine, _session_factory

    if _session_factory is None:
        _engine = create_db_engine()
        _session_factory = create_session_factory(_engine)
    return _session_factory


@contextmanager
def get_db_session(factory: sessionmaker | None = None) -> Generator[Session, None, None]:
    """Context manager for database sessions.

    Usage:
        with get_db_session() as db:
            db.query(...)
    """
    db = (factory or get_session_factory())()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine | None = None) -> None:
    """Create all tables directly, for local development and tests.

    Deployed databases are migrated with alembic instead.
    """
    from .models import Base

    if engine is None:
        get_session_factory()
        engine = _engine
    Base.metadata.create_all(bind=engine)


def check_database_health(factory: sessionmaker | None = None) -> bool:
    """Verify database connection is working.

    Returns:
        True if database is healthy, False otherwise.
    """
    try:
        with get_db_session(factory) as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


def list_tables() -> list[str]:
    """List all tables in the database.

    Returns:
        List of table names.
    """
    try:
        get_session_factory()
        return inspect(_engine).get_table_names()
    except Exception as e:
        logger.error(f"Failed to list tables: {e}")
        return []


def dispose_engine() -> None:
    """Dispose of the engine and all connections.

    Call this during graceful shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
