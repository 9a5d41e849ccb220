"""
SQLModel ORM Models for Mechanic Chat

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from mechanic_chat.infrastructure.db.models.base import (
    UUIDMixin,
    utcnow,
)
from mechanic_chat.infrastructure.db.models.user import User, AuthSession
from mechanic_chat.infrastructure.db.models.subscription import SubscriptionModel
from mechanic_chat.infrastructure.db.models.chat_session import ChatSession
from mechanic_chat.infrastructure.db.models.message import Message
from mechanic_chat.infrastructure.db.models.attachment import Attachment


__all__ = [
    # Base
    "UUIDMixin",
    "utcnow",
    # Identity
    "User",
    "AuthSession",
    # Ledger
    "SubscriptionModel",
    # Chat
    "ChatSession",
    "Message",
    "Attachment",
]
