"""
ChatSession SQLModel for Mechanic Chat

Database model for one consultation thread.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, Text
from sqlmodel import Field

from mechanic_chat.infrastructure.db.models.base import UUIDMixin, utcnow


class ChatSession(UUIDMixin, table=True):
    """
    ChatSession database table model.

    Owned by exactly one user for its whole life.
    """

    __tablename__ = "chat_sessions"

    user_id: UUID = Field(
        ...,
        foreign_key="users.id",
        index=True,
        nullable=False,
        description="Owning user"
    )

    vehicle_info: Optional[str] = Field(
        default=None,
        sa_column=Column(Text),
        description="JSON-serialised vehicle context"
    )

    status: str = Field(
        default="active",
        max_length=20,
        index=True,
        description="active, closed or waiting"
    )

    # Last sequence number handed to a message in this session
    message_seq: int = Field(default=0, nullable=False)

    # Timestamps (UTC)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    last_activity: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        description="Bumped on every message append"
    )
