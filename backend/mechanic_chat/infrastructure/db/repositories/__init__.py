"""
Repository Layer for Mechanic Chat

Exports all repository classes for dependency injection.
"""

from mechanic_chat.infrastructure.db.repositories.base_repository import BaseRepository
from mechanic_chat.infrastructure.db.repositories.user_repository import (
    UserRepository,
    AuthSessionRepository,
)
from mechanic_chat.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from mechanic_chat.infrastructure.db.repositories.chat_repository import (
    ChatRepository,
)
from mechanic_chat.infrastructure.db.repositories.attachment_repository import (
    AttachmentRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    # Repositories
    "UserRepository",
    "AuthSessionRepository",
    "SubscriptionRepository",
    "ChatRepository",
    "AttachmentRepository",
]
