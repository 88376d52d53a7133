"""The SQLite store behind every service call."""
from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

DEFAULT_DB_URL = os.environ.get("FLIGHTFINDER_DB_URL", "sqlite+pysqlite:///:memory:")


def create_session_factory(db_url: str = DEFAULT_DB_URL, *, echo: bool = False) -> Tuple[Engine, sessionmaker[Session]]:
    """Bind a session factory to ``db_url``; an in-memory URL shares one connection."""

    pool = {"poolclass": StaticPool} if db_url.endswith(":memory:") else {}
    engine = create_engine(db_url, echo=echo, connect_args={"check_same_thread": False}, **pool)
    return engine, sessionmaker(bind=engine, expire_on_commit=False)


def init_db(db_url: str = DEFAULT_DB_URL, *, echo: bool = False) -> sessionmaker[Session]:
    engine, session_factory = create_session_factory(db_url, echo=echo)
    Base.metadata.create_all(engine)
    return session_factory


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Commit the unit of work, or roll it back and re-raise."""

    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
