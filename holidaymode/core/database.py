"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (SQLite in-memory)
- Table definitions for holiday periods and the read-only habit catalog
"""
import logging
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, JSON, Text, Index, ForeignKey, UniqueConstraint, text
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import os

from holidaymode.core.config import settings

logger = logging.getLogger("holidaymode")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


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

    if url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions/threads
        _engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_pre_ping=True,
            echo=False,  # Set to True for SQL query logging
        )

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def dispose_engine() -> None:
    """Drop the current engine so the next call re-reads the database URL."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    The block runs in a single transaction: committed on success,
    rolled back on any exception.

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


def reset_database():
    """
    Reset the database by dropping and recreating all tables.

    WARNING: This is destructive! Only use in tests.
    """
    drop_all_tables()
    create_all_tables()


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


# User plan assignment (owned by billing; read here for allowance rules)
user_plans = Table(
    'user_plans',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('plan_id', String(50), nullable=False, server_default='free'),
    Column('assigned_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_user_plans_plan_id', 'plan_id'),
)

# Habit catalog (owned by habit tracking; read-only here)
habits = Table(
    'habits',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('name', Text, nullable=False),
    Column('category', String(100), nullable=False, server_default='general'),
    Column('type', String(10), nullable=False, server_default='good'),  # 'good' | 'bad'
    Column('current_streak', Integer, nullable=False, server_default='0'),
    Column('is_archived', Boolean, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_habits_user_created', 'user_id', 'created_at'),
)

habit_tasks = Table(
    'habit_tasks',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('habit_id', String(100), ForeignKey('habits.id', ondelete='CASCADE'), nullable=False, index=True),
    Column('name', Text, nullable=False),
    Column('description', Text, nullable=True),
    Column('position', Integer, nullable=False, server_default='0'),
    UniqueConstraint('habit_id', 'position', name='uq_habit_tasks_habit_position'),
)

# Holiday periods
holiday_periods = Table(
    'holiday_periods',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('start_date', String(10), nullable=False),  # YYYY-MM-DD
    Column('end_date', String(10), nullable=False),  # YYYY-MM-DD
    Column('applies_to_all', Boolean, nullable=False, server_default='1'),
    Column('frozen_habits', JSON, nullable=True),  # [habit_id, ...]
    Column('frozen_tasks', JSON, nullable=True),  # [{"habit_id": ..., "task_ids": [...]}, ...]
    Column('reason', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('created_on', String(10), nullable=True),  # YYYY-MM-DD in the creator's timezone
    Column('is_active', Boolean, nullable=False, server_default='1'),
    Column('deactivated_at', DateTime(timezone=True), nullable=True),  # early cancellation only
    Column('deactivated_on', String(10), nullable=True),  # YYYY-MM-DD in the canceller's timezone
    # History listing: (user_id, created_at)
    Index('idx_holiday_periods_user_created', 'user_id', 'created_at'),
    # At most one active period per user
    Index(
        'uq_holiday_periods_user_active',
        'user_id',
        unique=True,
        postgresql_where=text('is_active'),
        sqlite_where=text('is_active = 1'),
    ),
)
