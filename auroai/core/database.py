"""
SQLAlchemy Core engine, sessions and table definitions.

PostgreSQL in production (DATABASE_URL); tests point TEST_DATABASE_URL at an
in-memory SQLite database, which is served from one shared connection so every
thread sees the same tables.
"""
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import false, func

from auroai.core.config import settings

metadata = MetaData()

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def resolve_database_url() -> str:
    url = os.getenv("TEST_DATABASE_URL") or settings.TEST_DATABASE_URL or settings.DATABASE_URL
    if not url:
        raise RuntimeError("DATABASE_URL is not configured")
    return url


def _enforce_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores FOREIGN KEY clauses unless asked, PostgreSQL always checks them
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _build_engine(url: str) -> Engine:
    if make_url(url).get_backend_name() == "sqlite":
        engine = create_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enforce_sqlite_foreign_keys)
        return engine
    return create_engine(url, pool_size=5, max_overflow=10, pool_recycle=1800, pool_pre_ping=True)


def get_engine() -> Engine:
    global _engine, _session_factory
    if _engine is None:
        _engine = _build_engine(resolve_database_url())
        _session_factory = sessionmaker(bind=_engine, autoflush=False)
    return _engine


@contextmanager
def get_db_session() -> Iterator[Session]:
    """One transaction: committed on clean exit, rolled back on error."""
    get_engine()
    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables() -> None:
    metadata.create_all(bind=get_engine())


def drop_all_tables() -> None:
    metadata.drop_all(bind=get_engine())


def reset_database() -> None:
    """Tests only."""
    drop_all_tables()
    create_all_tables()


# Mirror of identity-provider users, refreshed whenever an access token is verified.
# The webhook path resolves Stripe customer emails to user ids through it.
users = Table(
    "app_users",
    metadata,
    Column("user_id", String(100), primary_key=True),
    Column("email", String(320), nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column("last_seen_at", DateTime(timezone=True), nullable=True),
    Index("ix_app_users_email", "email"),
)

profiles = Table(
    "profiles",
    metadata,
    Column("id", String(100), ForeignKey("app_users.user_id"), primary_key=True),
    Column("full_name", Text, nullable=True),
    Column("current_plan", String(50), nullable=False, server_default="teste"),
    Column("plan_expires_at", DateTime(timezone=True), nullable=True),
    Column("subscribed", Boolean, nullable=False, server_default=false()),
    # owned by the usage tracker; billing never writes these
    Column("credits_used", Integer, nullable=False, server_default="0"),
    Column("max_credits", Integer, nullable=False, server_default="5"),
    Column("whatsapp_number", String(32), nullable=True),
    Column("whatsapp_connected", Boolean, nullable=False, server_default=false()),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
)
