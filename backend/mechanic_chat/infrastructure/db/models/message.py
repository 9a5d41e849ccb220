"""
Message SQLModel for Mechanic Chat

Database model for a single turn within a chat session.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import Column, Index, String, Text
from sqlmodel import Field

from mechanic_chat.infrastructure.db.models.base import UUIDMixin, utcnow


class Message(UUIDMixin, table=True):
    """
    Message database table model.

    Append-only; the only mutation is flipping ``is_read``.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_session_order", "session_id", "created_at", "seq"),
    )

    session_id: UUID = Field(
        ...,
        foreign_key="chat_sessions.id",
        index=True,
        nullable=False,
        description="Parent chat session"
    )
    sender_id: Optional[UUID] = Field(
        default=None,
        foreign_key="users.id",
        nullable=True,
        description="NULL for bot/system turns"
    )
    sender_type: str = Field(
        ...,
        sa_column=Column(String(10), nullable=False),
        description="user, admin or bot"
    )

    content: str = Field(
        ...,
        sa_column=Column(Text, nullable=False),
    )

    is_read: bool = Field(default=False, nullable=False)

    # Per-session sequence from ChatSession.message_seq; breaks created_at ties
    seq: int = Field(default=0, nullable=False)

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
