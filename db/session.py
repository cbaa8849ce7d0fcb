# WORKFLOW: Database engine and session management for the SQL record store.
# Used by: SqlComplianceStore, app startup (init_db), health checks
# Functions:
# 1. get_engine() - Lazily build the engine for the configured URL
# 2. get_session_factory() - Lazily build the session factory
# 3. init_db() - Create tables
# 4. check_db_connection() - Health check for database connectivity
#
# Database lifecycle:
# Startup: init_db() -> Create tables
# Runtime: session factory -> Session -> Query -> Close session
# Health checks: check_db_connection() -> Monitor connectivity

from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)

# Lazy-loaded database engine and session factory
_engine = None
_SessionLocal = None


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for a database URL.

    SQLite connections are shared across threads; an in-memory SQLite database
    uses a single static connection so every session sees the same tables.
    """
    kwargs = {"echo": echo, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def get_engine():
    """Get database engine (lazy-loaded)."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings.database_url, echo=settings.debug)
    return _engine


def get_session_factory(engine: Optional[Engine] = None):
    """Get session factory (lazy-loaded for the default engine)."""
    global _SessionLocal
    if engine is not None:
        return sessionmaker(autocommit=False, autoflush=False, bind=engine)
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def init_db(engine: Optional[Engine] = None):
    """
    Initialize database tables.
    """
    from db.models import Base

    try:
        engine = engine or get_engine()
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def check_db_connection(engine: Optional[Engine] = None) -> bool:
    """
    Check if database connection is working.
    """
    try:
        engine = engine or get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
