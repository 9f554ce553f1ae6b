"""
Database connection and session management.
"""

from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from app.core.config import get_settings
from app.core.models import Base

# Import search models so they're registered with SQLAlchemy
from app.core import search_models  # noqa: F401
import logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Singleton engine & session factory: created once, reused everywhere
# ---------------------------------------------------------------------------
_engine = None
_SessionLocal = None


def get_engine():
    """
    Get the shared database engine (singleton).

    Uses connection pooling for efficiency. The engine is created once
    and reused for the lifetime of the process. SQLite (tests, local
    runs) skips the pool settings and allows cross-thread use, since
    background index maintenance runs outside the request thread.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        if settings.is_sqlite:
            _engine = create_engine(
                settings.database_url,
                connect_args={"check_same_thread": False},
                echo=False,
            )
        else:
            _engine = create_engine(
                settings.database_url,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,  # Verify connections before using
                echo=False,  # Set to True for SQL debugging
            )
    return _engine


def reset_engine() -> None:
    """Dispose the shared engine and session factory (used by tests)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def create_tables(engine=None):
    """
    Create the entity-store and search tables if they don't exist.

    Idempotent. Schema changes to existing tables are not applied.
    """
    if engine is None:
        engine = get_engine()

    logger.info("Creating search and entity tables if they don't exist...")
    Base.metadata.create_all(bind=engine)
    logger.info(f"Tables ready: {len(Base.metadata.tables)}")


def get_session_factory():
    """Get the shared session factory (singleton)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=get_engine()
        )
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped database session for FastAPI routes.

    Usage:
        @router.get("/search")
        async def search(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
