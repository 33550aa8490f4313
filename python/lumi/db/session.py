"""Database sessions for routes, Celery tasks and scripts.

Routes receive one session per request through ``get_db``. Work outside a
request (housekeeping tasks, maintenance scripts) opens its own with
``session_scope``. Services decide when to commit by wrapping their writes
in ``transaction``.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from lumi.db.engine import get_engine

_factory: sessionmaker[Session] | None = None


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Sessions bound to ``engine`` whose loaded rows stay readable after commit."""
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory() -> sessionmaker[Session]:
    global _factory
    if _factory is None:
        _factory = create_session_factory()
    return _factory


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """Open a session outside a request; it is closed on exit, never committed."""
    db = (factory or get_session_factory())()
    try:
        yield db
    finally:
        db.close()


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one session per request."""
    with session_scope() as db:
        yield db


@contextmanager
def transaction(db: Session) -> Iterator[None]:
    """Commit the enclosed writes, or roll them back and re-raise."""
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise
