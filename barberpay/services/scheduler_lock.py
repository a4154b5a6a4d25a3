"""DB-backed lock so that a single runner owns the background scheduler."""
from __future__ import annotations

import os
import socket
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from barberpay import db
from barberpay.models.scheduler_lock import SchedulerLock
from barberpay.utils.time import ensure_aware, utcnow

LOCK_NAME = "transfer-sweeper"
LOCK_TTL_SECONDS = 300


@contextmanager
def _scoped_session(db_session: Session | None) -> Iterator[Session]:
    if db_session is not None:
        yield db_session
        return
    session = db.get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


def _owner_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


def _select_lock(session: Session, name: str):
    stmt = select(SchedulerLock).where(SchedulerLock.name == name).with_for_update()
    return session.execute(stmt).scalar_one_or_none()


def try_acquire_scheduler_lock(
    name: str = LOCK_NAME,
    *,
    ttl_seconds: int = LOCK_TTL_SECONDS,
    db_session: Session | None = None,
) -> bool:
    """Take the lock when free, expired or already ours; ``False`` otherwise."""

    owner = _owner_id()
    now = utcnow()
    expires = now + timedelta(seconds=ttl_seconds)

    with _scoped_session(db_session) as session:
        try:
            lock = _select_lock(session, name)
            if lock is None:
                session.add(SchedulerLock(name=name, owner=owner, acquired_at=now, expires_at=expires))
                session.commit()
                return True

            expires_at = ensure_aware(lock.expires_at) if lock.expires_at else None
            if lock.owner != owner and expires_at is not None and expires_at > now:
                session.rollback()
                return False

            if lock.owner != owner:
                lock.owner = owner
                lock.acquired_at = now
            lock.expires_at = expires
            session.commit()
            return True
        except IntegrityError:
            # Another runner inserted the row first.
            session.rollback()
            return False


def refresh_scheduler_lock(
    name: str = LOCK_NAME, *, ttl_seconds: int = LOCK_TTL_SECONDS, db_session: Session | None = None
) -> None:
    """Extend the lock TTL while this runner holds it."""

    with _scoped_session(db_session) as session:
        lock = _select_lock(session, name)
        if lock is not None and lock.owner == _owner_id():
            lock.expires_at = utcnow() + timedelta(seconds=ttl_seconds)
            session.commit()
        else:
            session.rollback()


def release_scheduler_lock(name: str = LOCK_NAME, *, db_session: Session | None = None) -> None:
    with _scoped_session(db_session) as session:
        lock = _select_lock(session, name)
        if lock is not None and lock.owner == _owner_id():
            session.delete(lock)
            session.commit()
        else:
            session.rollback()


def describe_scheduler_lock(name: str = LOCK_NAME, *, db_session: Session | None = None) -> dict[str, object]:
    """Summarise who holds the lock and for how long, for the health endpoint."""

    with _scoped_session(db_session) as session:
        lock = session.execute(select(SchedulerLock).where(SchedulerLock.name == name)).scalar_one_or_none()
        if lock is None:
            return {"status": "none", "owner": None, "present": False}

        now = utcnow()
        acquired_at = ensure_aware(lock.acquired_at) if lock.acquired_at else None
        expires_at = ensure_aware(lock.expires_at) if lock.expires_at else None
        expires_in = (expires_at - now).total_seconds() if expires_at else None
        return {
            "status": "owned_by_self" if lock.owner == _owner_id() else "owned_by_other",
            "owner": lock.owner,
            "present": True,
            "age_seconds": (now - acquired_at).total_seconds() if acquired_at else None,
            "expires_in_seconds": expires_in,
            "stale": expires_in is not None and expires_in < -60,
        }


__all__ = [
    "LOCK_NAME",
    "describe_scheduler_lock",
    "refresh_scheduler_lock",
    "release_scheduler_lock",
    "try_acquire_scheduler_lock",
]
