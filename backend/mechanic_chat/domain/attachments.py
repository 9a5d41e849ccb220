"""
Attachment Domain Rules

Allow-list and size ceilings for chat uploads.
"""

import os
import re
from datetime import datetime
from enum import Enum
from typing import Optional


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


ALLOWED_MIME_TYPES = {
    "image/jpeg": MediaKind.IMAGE,
    "image/png": MediaKind.IMAGE,
    "image/gif": MediaKind.IMAGE,
    "image/webp": MediaKind.IMAGE,
    "video/mp4": MediaKind.VIDEO,
    "video/webm": MediaKind.VIDEO,
    "video/quicktime": MediaKind.VIDEO,
    "video/x-msvideo": MediaKind.VIDEO,
}


def media_kind(mime_type: Optional[str]) -> Optional[MediaKind]:
    """Kind of an allow-listed mime type, or None if it is not allowed."""
    if not mime_type:
        return None
    return ALLOWED_MIME_TYPES.get(mime_type.lower())


def size_limit(kind: MediaKind, max_image_bytes: int, max_video_bytes: int) -> int:
    return max_image_bytes if kind == MediaKind.IMAGE else max_video_bytes


def placeholder_content(original_name: str) -> str:
    """Text of the message that carries an attachment."""
    return f"[File: {original_name}]"


def safe_original_name(name: Optional[str]) -> str:
    """Strip any client-supplied directory parts from an upload name."""
    base = os.path.basename((name or "").replace("\\", "/")).strip()
    return base or "upload"


def stored_extension(original_name: str) -> str:
    """Lower-cased extension kept on the stored blob, if it looks sane."""
    _, ext = os.path.splitext(original_name)
    ext = ext.lower()
    if re.fullmatch(r"\.[a-z0-9]{1,8}", ext):
        return ext
    return ""


def is_expired(expires_at: datetime, now: datetime) -> bool:
    return expires_at <= now
