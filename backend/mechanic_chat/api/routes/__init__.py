# API Routes Module
from mechanic_chat.api.routes import (
    users,
    subscriptions,
    chats,
    attachments,
    admin,
)

__all__ = [
    "users",
    "subscriptions",
    "chats",
    "attachments",
    "admin",
]
