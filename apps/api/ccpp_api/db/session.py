"""Database session management."""

from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ccpp_api.settings import get_settings


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite gets thread-shareable connections and enforced foreign keys."""
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False}, **kwargs)

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.execute("PRAGMA busy_timeout = 30000")
            cursor.close()

        return engine
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        **kwargs,
    )


@lru_cache()
def get_engine() -> Engine:
    """Get the process-wide engine."""
    return make_engine(get_settings().database_url_computed)


@lru_cache()
def get_session_factory() -> sessionmaker:
    """Get the process-wide session factory."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db():
    """Get database session."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
