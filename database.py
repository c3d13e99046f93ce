from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:", "sqlite+pysqlite:///:memory:")


class Base(DeclarativeBase):
    pass


def _use_wal(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.close()


def build_engine(url: Optional[str] = None) -> Engine:
    """Engine for ``url``, defaulting to the configured database.

    In-memory SQLite URLs get a single shared connection so every session sees
    the same tables.
    """
    url = url or get_settings().database_url
    if not url.startswith("sqlite"):
        return create_engine(url)
    if url in IN_MEMORY_URLS:
        return create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    eng = create_engine(url, connect_args={"check_same_thread": False})
    event.listen(eng, "connect", _use_wal)
    return eng


def build_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(bind=eng, autoflush=False, expire_on_commit=False)


engine = build_engine()
SessionLocal = build_session_factory(engine)


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
