"""Database engine and session management."""

import logging
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from loyaltyrec.config import get_settings

# Configure module logger
logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""


_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


def get_engine() -> Engine:
    """Return the process-wide engine, created on first use."""
    global _engine

    if _engine is None:
        settings = get_settings()
        logger.info("Creating database engine")
        _engine = create_db_engine(settings.database_url)
    return _engine


def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    # Register models on the metadata
    from loyaltyrec.storage import models  # noqa: F401

    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database schema ready")


def get_session() -> Iterator[Session]:
    """FastAPI dependency yielding a session that is always closed."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()
