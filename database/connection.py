"""
Engine, session factory and transactional session scope.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
import config.settings as settings

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Pool options for the configured backend; SQLite connections are shared across worker threads."""
    if make_url(database_url).get_backend_name() == 'sqlite':
        return {'connect_args': {'check_same_thread': False}}
    return {
        'poolclass': QueuePool,
        'pool_size': settings.DB_POOL_SIZE,
        'max_overflow': settings.DB_MAX_OVERFLOW,
        'pool_pre_ping': True,
    }


engine = create_engine(settings.DATABASE_URL, echo=settings.DB_ECHO, **_engine_options(settings.DATABASE_URL))

# Committed objects stay loaded after the session scope closes
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@contextmanager
def get_db_session():
    """
    Transactional session scope.

    Commits when the block exits normally; on any exception rolls back and
    re-raises. The session is always closed.

    Usage:
        with get_db_session() as session:
            progress_service.update_application_progress(session, application_id)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database session error: {e}")
        raise
    finally:
        session.close()


def get_session() -> Session:
    """
    Get a new unmanaged session; the caller commits and closes it.

    Returns:
        SQLAlchemy session instance
    """
    return SessionLocal()


def init_database():
    """Create any missing tables at startup; an unreachable database is logged, not raised."""
    try:
        from database import Base
        import models  # noqa: F401  registers every table on Base.metadata

        with engine.connect():
            logger.info(f"Connected to {engine.url.get_backend_name()} database")

        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Progress and third-party tables ready")

    except Exception as e:
        logger.warning(f"Database initialization skipped: {e}")


def health_check() -> bool:
    """
    Check database connectivity.

    Returns:
        True if a trivial query succeeds
    """
    try:
        with get_db_session() as session:
            session.execute(text('SELECT 1'))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
