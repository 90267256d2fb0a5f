from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from .config import load_settings


def serialize_sqlite_transactions(db_engine: Engine) -> Engine:
    """Open every SQLite transaction with ``BEGIN IMMEDIATE``.

    SQLite has no row locks, so ``SELECT ... FOR UPDATE`` is a no-op there;
    taking the write lock up front makes concurrent calls run one after another.
    """
    if db_engine.dialect.name != "sqlite":
        return db_engine

    @event.listens_for(db_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(db_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return db_engine


settings = load_settings()

engine = serialize_sqlite_transactions(
    create_engine(settings.database_url, future=True, echo=False, pool_pre_ping=True)
)
SessionLocal = scoped_session(sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True))


@contextmanager
def session_scope(factory: Optional[Callable[[], Session]] = None) -> Iterator[Session]:
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def use_session(
    session: Optional[Session] = None, factory: Optional[Callable[[], Session]] = None
) -> Iterator[Session]:
    """Join the caller's transaction when given one, otherwise open a new scope."""
    if session is not None:
        yield session
        return
    with session_scope(factory) as new_session:
        yield new_session
