"""Engine and session plumbing for the payment ledger database."""
from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from barberpay.config import get_settings
from barberpay.models.base import Base

engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """Build the engine from ``DATABASE_URL`` on first use."""

    global engine, SessionLocal
    if engine is None:
        url = get_settings().database_url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        engine = create_engine(url, future=True, pool_pre_ping=True, connect_args=connect_args)
        SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
    return engine


def get_sessionmaker() -> sessionmaker[Session]:
    if SessionLocal is None:
        get_engine()
    return SessionLocal


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # Payments reference appointments and barbers; SQLite ignores FKs unless told.
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_all() -> None:
    """Create the ledger tables directly; dev only, Alembic owns the schema elsewhere."""

    Base.metadata.create_all(bind=get_engine())


def close_engine() -> None:
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session for routers and the webhook ingress."""

    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


__all__ = ["create_all", "close_engine", "get_db", "get_engine", "get_sessionmaker"]
