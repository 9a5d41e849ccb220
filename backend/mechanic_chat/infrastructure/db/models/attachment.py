"""
Attachment SQLModel for Mechanic Chat

File metadata for an uploaded blob. The blob itself lives on disk under
``settings.upload_dir`` and is addressed by ``file_name``.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Column, String
from sqlmodel import Field

from mechanic_chat.infrastructure.db.models.base import UUIDMixin, utcnow


class Attachment(UUIDMixin, table=True):
    """Attachment database table model. One attachment per owning message."""

    __tablename__ = "attachments"

    message_id: UUID = Field(
        ...,
        foreign_key="messages.id",
        unique=True,
        nullable=False,
    )

    file_name: str = Field(
        ...,
        sa_column=Column(String(255), unique=True, nullable=False, index=True),
        description="Stored (generated) file name"
    )
    original_name: str = Field(
        ...,
        sa_column=Column(String(255), nullable=False),
    )
    file_size: int = Field(..., nullable=False)
    mime_type: str = Field(..., max_length=100, nullable=False)
    file_path: str = Field(
        ...,
        sa_column=Column(String(1024), nullable=False),
    )

    uploaded_at: datetime = Field(default_factory=utcnow, nullable=False)
    expires_at: datetime = Field(..., nullable=False, index=True)
