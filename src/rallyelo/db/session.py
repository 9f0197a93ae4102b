"""
Database session management for rallyelo.

Provides SQLAlchemy engine and session factory with proper
connection pooling configuration. Uses the settings from config.py.

Sessions are always passed explicitly to the store functions in
rallyelo.repositories; the workflow decides where a transaction starts
and ends with unit_of_work().

Usage:
    # As a context manager (recommended for scripts)
    from rallyelo.db import get_session

    with get_session() as session:
        session.add(new_user)
        # Commits automatically on exit, rolls back on exception

    # As a dependency injection (for FastAPI)
    from rallyelo.db.session import get_db

    @app.get("/sports")
    def list_sports(db: Session = Depends(get_db)):
        ...
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from rallyelo.config import settings


def get_engine():
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool for efficient reuse
    - Echo mode disabled (set LOG_LEVEL=DEBUG for SQL logging)
    - Pre-ping to verify connections before use (handles stale connections)
    """
    return create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,  # Verify connection is alive before using
        echo=settings.log_level == "DEBUG",  # Log SQL only in debug mode
    )


# Create the engine (singleton pattern via module-level variable)
_engine = None


def _get_engine():
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


# Session factory - creates new sessions bound to our engine
SessionLocal = sessionmaker(
    autocommit=False,  # We'll handle commits explicitly
    autoflush=False,  # Don't auto-flush before queries (more control)
    bind=_get_engine(),
)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.
    This is the recommended way to use sessions in scripts and tasks.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def unit_of_work(session: Session) -> Generator[Session, None, None]:
    """
    Transaction boundary on an existing session.

    Everything done on ``session`` inside the block is committed together
    when the block exits normally, and rolled back together if anything
    raises. Domain errors raised inside the block are re-raised unchanged
    after the rollback.

    Example:
        with unit_of_work(db):
            ratings = lock_ratings(db, sport_id, [p1, p2], default_elo)
            ...
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency injection function for FastAPI.

    Use this with FastAPI's Depends() for request-scoped sessions.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
