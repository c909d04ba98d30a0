"""
Engine, sessions and table definitions for the StayHard store.

SQLite is used in tests and local dev (a single shared connection for
``sqlite://``); anything else gets a pooled engine. Tables are plain
SQLAlchemy Core, mapped to domain dataclasses in each feature's
persistence module.
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Date, Float, JSON, Text, LargeBinary, Index, UniqueConstraint, text
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
import logging
import os

from stayhard.core.config import settings

logger = logging.getLogger("stayhard")

metadata = MetaData()

POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600

IN_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")

_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """TEST_DATABASE_URL wins over DATABASE_URL when both are set."""
    return os.getenv("TEST_DATABASE_URL") or settings.DATABASE_URL


def _build_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            pool_pre_ping=True,
        )
    if url in IN_MEMORY_SQLITE_URLS:
        # every session must see the same in-memory database
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, connect_args={"check_same_thread": False})


def init_engine(database_url: Optional[str] = None):
    """(Re)bind the module engine and session factory. Returns the engine."""
    global _engine, _SessionLocal

    url = database_url or get_database_url()
    if not url:
        raise ValueError("DATABASE_URL is not configured. Set DATABASE_URL in environment or .env file.")

    if _engine is not None:
        _engine.dispose()
    _engine = _build_engine(url)
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    logger.debug("database engine ready", extra={"dialect": _engine.dialect.name})
    return _engine


def get_engine():
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Transactional session: commits on clean exit, rolls back on any error.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """Create missing tables. Safe to call repeatedly."""
    metadata.create_all(bind=get_engine())


def check_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


# Users table
users = Table(
    'app_users',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('email', String(320), nullable=True, index=True),
    Column('display_name', String(200), nullable=True),
    Column('photo_url', Text, nullable=True),
    Column('status', String(50), nullable=False, server_default='active'),
    Column('current_challenge_id', String(100), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('last_login', DateTime(timezone=True), nullable=True),
)

# Challenges table
challenges = Table(
    'challenges',
    metadata,
    Column('challenge_id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('duration_days', Integer, nullable=False),
    Column('level', String(20), nullable=False),
    Column('status', String(20), nullable=False, server_default='active'),
    Column('start_date', DateTime(timezone=True), nullable=False),
    Column('task_template', JSON, nullable=False),
    Column('completed_days', Integer, nullable=False, server_default='0'),
    Column('current_streak', Integer, nullable=False, server_default='0'),
    Column('longest_streak', Integer, nullable=False, server_default='0'),
    Column('average_completion_rate', Float, nullable=False, server_default='0'),
    Column('total_days_elapsed', Integer, nullable=False, server_default='0'),
    Column('completed_at', DateTime(timezone=True), nullable=True),
    Column('failed_at', DateTime(timezone=True), nullable=True),
    Column('failure_reason', String(100), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
    # Composite index for "current challenge" lookups: (user_id, status)
    Index('idx_challenges_user_status', 'user_id', 'status'),
    Index('idx_challenges_user_created', 'user_id', 'created_at'),
    # At most one active challenge per user
    Index(
        'uq_challenges_one_active_per_user',
        'user_id',
        unique=True,
        sqlite_where=text("status = 'active'"),
        postgresql_where=text("status = 'active'"),
    ),
)

# Daily progress records
daily_progress = Table(
    'daily_progress',
    metadata,
    Column('progress_id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('challenge_id', String(100), nullable=False, index=True),
    Column('date', Date, nullable=False),
    Column('day_number', Integer, nullable=False),
    Column('tasks', JSON, nullable=False),
    Column('completion_rate', Float, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
    # One record per (user, challenge, day)
    UniqueConstraint('user_id', 'challenge_id', 'date', name='uq_daily_progress_user_challenge_date'),
    Index('idx_daily_progress_user_date', 'user_id', 'date'),
    Index('idx_daily_progress_challenge_day', 'challenge_id', 'day_number'),
)

# Progress photos (blob + client metadata)
progress_photos = Table(
    'progress_photos',
    metadata,
    Column('photo_id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('challenge_id', String(100), nullable=False, index=True),
    Column('date', String(10), nullable=False),  # client-local YYYY-MM-DD label
    Column('filename', String(255), nullable=False),
    Column('content_type', String(100), nullable=False),
    Column('size_bytes', Integer, nullable=False),
    Column('data', LargeBinary, nullable=False),
    Column('uploaded_at', DateTime(timezone=True), nullable=False),
    Column('local_timestamp', String(64), nullable=True),
    Column('timezone', String(64), nullable=False, server_default='UTC'),
    Column('timezone_offset', Integer, nullable=False, server_default='0'),
    Index('idx_progress_photos_user_challenge_date', 'user_id', 'challenge_id', 'date'),
)
