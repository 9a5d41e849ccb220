"""
Chat Domain Models for Mechanic Chat

Pure Python/Pydantic models for chat entities plus the read-model rules
(unread scoping, effective last activity) shared by the user and admin views.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


MAX_MESSAGE_LENGTH = 5000


class SenderType(str, Enum):
    """Who authored a message."""
    USER = "user"
    ADMIN = "admin"
    BOT = "bot"


class SessionStatus(str, Enum):
    """Chat session lifecycle status."""
    ACTIVE = "active"
    CLOSED = "closed"
    WAITING = "waiting"


# =============================================================================
# Read-model rules
# =============================================================================

def is_unread_for(sender_type: str, is_read: bool, reader: SenderType) -> bool:
    """
    A message is unread for ``reader`` only if someone else wrote it.

    Admins read as one party, so every non-admin message counts for them;
    a user's own messages never count for the user.
    """
    if is_read:
        return False
    return sender_type != reader.value


def effective_last_activity(
    last_activity: Optional[datetime],
    created_at: Optional[datetime],
    last_message_at: Optional[datetime] = None,
) -> datetime:
    """Latest of the session's own bookkeeping and its newest message."""
    candidates = [t for t in (last_activity, created_at, last_message_at) if t is not None]
    if not candidates:
        return datetime.min.replace(tzinfo=timezone.utc)
    return max(candidates)


# =============================================================================
# Request DTOs
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to open a new consultation."""
    vehicle_info: Dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form vehicle context (type, make, model, issue...)"
    )


class SendMessageRequest(BaseModel):
    """Request to add a message to a session."""
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)


# =============================================================================
# Response DTOs
# =============================================================================

class SenderView(BaseModel):
    """Public projection of a message author. No credentials."""
    id: UUID
    username: str
    is_admin: bool

    model_config = ConfigDict(from_attributes=True)


class AttachmentView(BaseModel):
    """Attachment metadata as exposed to clients."""
    id: UUID
    file_name: str
    original_name: str
    file_size: int
    mime_type: str
    url: str
    uploaded_at: datetime
    expires_at: datetime


class MessageView(BaseModel):
    """Message enriched with its sender and attachments."""
    id: UUID
    session_id: UUID
    sender_id: Optional[UUID] = None
    sender_type: SenderType
    content: str
    is_read: bool
    created_at: datetime
    sender: Optional[SenderView] = None
    attachments: List[AttachmentView] = Field(default_factory=list)


class LastMessagePreview(BaseModel):
    """Trimmed last message used in session lists."""
    content: str
    created_at: datetime
    sender_type: SenderType


class SessionView(BaseModel):
    """Chat session without enrichment."""
    id: UUID
    user_id: UUID
    vehicle_info: Dict[str, Any] = Field(default_factory=dict)
    status: SessionStatus
    created_at: datetime
    last_activity: datetime


class SessionPreview(SessionView):
    """Session enriched for list views."""
    last_message: Optional[LastMessagePreview] = None
    message_count: int = 0
    unread_count: int = 0
    effective_last_activity: datetime
    user: Optional[SenderView] = None


def sort_previews(previews: Iterable[SessionPreview]) -> List[SessionPreview]:
    """Most recently active first, by effective last activity."""
    return sorted(previews, key=lambda p: p.effective_last_activity, reverse=True)
