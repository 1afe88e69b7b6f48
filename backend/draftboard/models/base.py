"""Base model utilities for SQLAlchemy."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def Money(**kwargs) -> Column:
    """Currency column: two decimal places, defaults to zero."""
    kwargs.setdefault("nullable", False)
    kwargs.setdefault("default", Decimal("0.00"))
    return Column(Numeric(15, 2), **kwargs)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from databases without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def new_id() -> str:
    return str(uuid4())


class TimestampMixin:
    """Mixin that adds created_at and updated_at fields to models."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        comment="When the record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        comment="When the record was last updated"
    )


class UUIDMixin:
    """Mixin that adds a UUID string primary key."""

    id = Column(
        String(36),
        primary_key=True,
        default=new_id,
        nullable=False,
        comment="Unique identifier"
    )
