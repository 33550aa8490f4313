"""Dialect-aware INSERT ... ON CONFLICT construction.

Cross-request coordination (participant rollups, vote keys, conversation
pairs, token storage) relies on single-statement upserts. PostgreSQL and
SQLite share the ON CONFLICT grammar; this picks the right construct for the
session's bind.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def insert_for(db: Session, model):
    """Return a dialect-specific insert() for ``model`` supporting on_conflict_*.

    Raises:
        NotImplementedError: For dialects without ON CONFLICT support.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"upsert not supported for dialect {dialect!r}")
