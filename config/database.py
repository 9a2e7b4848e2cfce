"""Database configuration for flusio.

Owns the SQLAlchemy engine and session factory. SQLite is used for
development and tests, PostgreSQL in production; the URL comes from
``settings.database_url`` unless ``configure_database`` is given one.
"""

import logging
import pathlib
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .settings import settings

logger = logging.getLogger(__name__)

Base = declarative_base()
SessionLocal = sessionmaker(autoflush=False, autocommit=False)

_engine: Optional[Engine] = None


def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def configure_database(database_url: Optional[str] = None) -> Engine:
    """(Re)create the engine and bind the session factory to it."""
    global _engine

    url = database_url or settings.database_url
    if _engine is not None:
        _engine.dispose()

    if url.startswith("sqlite"):
        database_path = url.split("///", 1)[-1]
        if "///" in url and database_path and database_path != ":memory:":
            pathlib.Path(database_path).parent.mkdir(parents=True, exist_ok=True)
        _engine = create_engine(url, connect_args={"check_same_thread": False})
        event.listen(_engine, "connect", _set_sqlite_pragma)
    else:
        _engine = create_engine(
            url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    SessionLocal.configure(bind=_engine)
    logger.info(f"Database configured: {_engine.url.get_backend_name()}")
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        configure_database()
    return _engine


def create_schema():
    """Create all the tables from the models (tests and quick setups)."""
    # Import models so they register on Base.metadata
    from services.shared import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def check_connection() -> bool:
    """Return True if the database answers a trivial query."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    get_engine()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db() -> Iterator[Session]:
    """Database session dependency"""
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
