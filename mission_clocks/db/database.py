"""
Database connection and session utilities.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from mission_clocks.errors import StorageError

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the durable store."""
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
        echo=echo  # Set DB_ECHO=true for SQL logging
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create the session factory bound to an engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine):
    """Initialize database - create all tables."""
    from mission_clocks.db.models import Base
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized at: {engine.url}")


@contextmanager
def session_scope(session_factory: SessionFactory) -> Iterator[Session]:
    """
    Open a session, commit on success and roll back on failure.

    Any SQLAlchemy failure is re-raised as StorageError so callers never
    report success for a write that was not acknowledged.
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage operation failed: {e}", exc_info=True)
        raise StorageError(str(e)) from e
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
