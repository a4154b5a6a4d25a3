from sqlalchemy import text

from barberpay import db


def test_get_db_yields_session_on_shared_engine():
    sessions = db.get_db()
    session = next(sessions)
    try:
        assert session.bind is db.get_engine()
        assert session.execute(text("PRAGMA foreign_keys")).scalar() == 1
    finally:
        sessions.close()


def test_get_sessionmaker_reuses_factory():
    assert db.get_sessionmaker() is db.get_sessionmaker()
