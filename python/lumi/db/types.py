"""Column types and clock helpers shared by the ORM models."""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Integer
from sqlalchemy.types import TIMESTAMP, TypeDecorator

# BIGINT identity on PostgreSQL; SQLite only auto-increments INTEGER PRIMARY KEY
BigIntId = BigInteger().with_variant(Integer(), "sqlite")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class UTCDateTime(TypeDecorator):
    """TIMESTAMPTZ that always hands back aware UTC datetimes.

    SQLite has no timezone storage; values are normalized to UTC on the way
    in so stored text compares in instant order, and re-tagged on the way out.
    """

    impl = TIMESTAMP(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = as_utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)
