"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (including SQLite URLs)
- Table definitions for the usage ledger and advocate directory
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Float, JSON, Text, Index, UniqueConstraint, text
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import logging
import os
import threading

from intellect.core.config import settings

logger = logging.getLogger("intellect")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None
_engine_lock = threading.Lock()


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # A single shared connection, otherwise every checkout sees an empty database
            options["poolclass"] = StaticPool
        return options
    return {
        "poolclass": QueuePool,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": POOL_TIMEOUT,
        "pool_recycle": POOL_RECYCLE,
        "pool_pre_ping": True,
    }


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    with _engine_lock:
        if _engine is not None:
            _engine.dispose()

        _engine = create_engine(url, echo=False, **_engine_options(url))

        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=_engine
        )

    return _engine


def dispose_engine() -> None:
    """Close pooled connections and forget the engine (tests, shutdown)."""
    global _engine, _SessionLocal
    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _SessionLocal = None


def get_engine():
    """Get the current SQLAlchemy engine."""
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


# Usage ledger: one immutable row per admitted action (rolling-window policy)
usage_records = Table(
    'usage_records',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('identity', String(255), nullable=False),
    Column('action_type', String(50), nullable=False),
    Column('occurred_at', DateTime(timezone=True), nullable=False),
    Column('metadata', JSON, nullable=True),
    # Composite index for window queries: (identity, action_type, occurred_at)
    Index('idx_usage_records_identity_action_occurred', 'identity', 'action_type', 'occurred_at'),
)

# Usage counters: one mutable row per (identity, action_type) (fixed-counter policy)
usage_counters = Table(
    'usage_counters',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('identity', String(255), nullable=False),
    Column('action_type', String(50), nullable=False),
    Column('count', Integer, nullable=False, server_default='0'),
    Column('blocked_until', DateTime(timezone=True), nullable=True),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    UniqueConstraint('identity', 'action_type', name='uq_usage_counters_identity_action'),
)

# Advocate directory (read-only to the matcher, loaded by the seed script)
advocates = Table(
    'advocates',
    metadata,
    Column('sl_no', Integer, primary_key=True, autoincrement=False),
    Column('name', String(255), nullable=False),
    Column('short_description', Text, nullable=False, server_default=''),
    Column('skills', Text, nullable=False, server_default=''),
    Column('experience', Float, nullable=False, server_default='0'),
    Column('gender', String(50), nullable=False, server_default=''),
    Column('rating', Float, nullable=False, server_default='0'),
    Column('email', String(255), nullable=False, server_default=''),
    Column('country', String(100), nullable=False),
    Index('idx_advocates_country', 'country'),
    Index('idx_advocates_name', 'name'),
)

REQUIRED_TABLES = [table.name for table in metadata.sorted_tables]
