"""
Engine and session handling for the categories database.

Responsibilities:
- Build the SQLAlchemy engine from configuration (SQLite file by default)
- Hand out sessions from a process-wide session factory
- Create / drop the schema
- Apply SQLite connection pragmas (WAL journal, foreign keys)

Only engine and session objects are process-wide; category data is always
read fresh through a session.
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, close_all_sessions, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.base import Base
from ..utils.config import get_config
from ..utils.constants import TABLE_CATEGORY
from .exceptions import DatabaseError

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Turn on WAL and foreign keys for every new SQLite connection."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    for pragma in ("foreign_keys=ON", "journal_mode=WAL", "synchronous=NORMAL"):
        cursor.execute(f"PRAGMA {pragma}")
    cursor.close()


def _engine_options(database_url: str) -> Dict[str, Any]:
    if ":memory:" in database_url or "mode=memory" in database_url:
        # Every session must see the same in-memory database
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {}


def _register_models() -> None:
    # Importing the model modules attaches their tables to Base.metadata
    from ..models import category  # noqa: F401


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Build an engine for database_url.

    Args:
        database_url: SQLAlchemy URL; the configured URL when None
        echo: Log emitted SQL

    Returns:
        New Engine (not stored globally)
    """
    if database_url is None:
        database_url = get_config().database_url

    logger.info(f"Opening database engine for {database_url}")
    return create_engine(database_url, echo=echo, **_engine_options(database_url))


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Create any missing tables. Existing tables are left alone.

    Args:
        engine: Engine to use; the global engine when None
    """
    if engine is None:
        engine = get_engine()

    _register_models()
    Base.metadata.create_all(engine)
    logger.info("Category schema is in place")


def get_engine(force_recreate: bool = False) -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


def get_session_factory() -> sessionmaker:
    """Return the process-wide sessionmaker bound to get_engine()."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)

    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope():
    """
    Run a block of work in one transaction.

    The session is committed when the block finishes, rolled back when it
    raises and closed in both cases. SQLAlchemy failures are re-raised as
    DatabaseError; other exceptions propagate unchanged. Objects stay
    readable after the block since sessions don't expire on commit.

    Example:
        with session_scope() as session:
            session.add(Category(name="News", slug="news", parent_id=0))

    Raises:
        DatabaseError: If the database rejects the work or the commit
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Transaction rolled back: {e}")
        raise DatabaseError("Transaction failed", original_error=e) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def verify_database() -> bool:
    """Return True if the configured database has the categories table."""
    try:
        return TABLE_CATEGORY in inspect(get_engine()).get_table_names()
    except Exception as e:
        logger.error(f"Could not inspect database: {e}")
        return False


def reset_database(confirm: bool = False) -> None:
    """
    Drop and recreate every table, deleting all categories.

    Args:
        confirm: Must be True; guards against accidental calls

    Raises:
        ValueError: If confirm is not True
    """
    if not confirm:
        raise ValueError("reset_database() deletes all categories; pass confirm=True")

    logger.warning("Dropping all tables")
    engine = get_engine()
    _register_models()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.info("Empty schema recreated")


def close_connections() -> None:
    """Close open sessions and dispose of the global engine."""
    global _engine, _SessionFactory

    if _SessionFactory is not None:
        close_all_sessions()
        _SessionFactory = None

    if _engine is not None:
        _engine.dispose()
        _engine = None

    logger.info("Database engine disposed")


def initialize_app_database() -> None:
    """
    Prepare the configured database at startup.

    Creates the SQLite file and the schema when missing.
    """
    config = get_config()
    if config.database_exists():
        logger.info(f"Using database {config.database_path}")
    else:
        logger.info(f"Creating database {config.database_url}")

    init_database(get_engine())

    if not verify_database():
        logger.warning(f"Table '{TABLE_CATEGORY}' missing after initialization")
