"""
Base Model helpers for SQLModel ORM

Provides the UUID primary key mixin and the UTC clock used by every table.
Timestamps are timezone-aware UTC; SQLModel maps plain ``datetime`` fields
to a UTC column type that rejects naive values on write and hands back
aware UTC on read, including on SQLite.
"""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Current time as timezone-aware UTC."""
    return datetime.now(timezone.utc)


class UUIDMixin(SQLModel):
    """
    Mixin providing UUID primary key.

    Only handles ID generation.
    """

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        nullable=False,
        description="Unique identifier (UUID v4)"
    )
