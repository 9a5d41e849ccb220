"""
Admin Console Service

Aggregate stats and sanitised listings for the admin dashboard.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.domain.access import authorize_admin
from mechanic_chat.domain.chat import SenderType, SessionStatus
from mechanic_chat.domain.presence import DashboardResponse, DashboardStats
from mechanic_chat.domain.users import UserView
from mechanic_chat.infrastructure.db.models.base import utcnow
from mechanic_chat.infrastructure.db.repositories.chat_repository import ChatRepository
from mechanic_chat.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from mechanic_chat.infrastructure.db.repositories.user_repository import UserRepository
from mechanic_chat.infrastructure.services.chat_service import ChatService
from mechanic_chat.infrastructure.services.presence_service import PresenceService


logger = logging.getLogger(__name__)

RECENT_MESSAGES_LIMIT = 20


class AdminService:
    """Read-only admin console views. Every method requires an admin caller."""

    def __init__(self, session: AsyncSession):
        self._users = UserRepository(session)
        self._chats = ChatRepository(session)
        self._subscriptions = SubscriptionRepository(session)
        self._chat_service = ChatService(session)
        self._presence = PresenceService(session)

    async def list_users(self, admin) -> List[UserView]:
        authorize_admin(admin)
        return [UserView.model_validate(u) for u in await self._users.list_customers()]

    async def dashboard(self, admin, now: Optional[datetime] = None) -> DashboardResponse:
        """
        Stats plus users, active sessions and recent messages.

        ``subscribed_users`` is derived from the ledger, not from the
        ``has_subscription`` display cache.
        """
        authorize_admin(admin)
        now = now or utcnow()

        stats = DashboardStats(
            total_users=await self._users.count_customers(),
            subscribed_users=await self._subscriptions.count_active_subscribers(now),
            online_users=await self._presence.count_online(now),
            active_chats=await self._chats.count_sessions(SessionStatus.ACTIVE.value),
            unread_messages=await self._chats.count_unread(SenderType.ADMIN.value),
            total_messages=await self._chats.count_messages(),
            total_revenue=await self._subscriptions.total_revenue(),
        )

        return DashboardResponse(
            stats=stats,
            users=await self.list_users(admin),
            active_sessions=await self._chat_service.list_active_sessions(admin),
            recent_messages=await self._chat_service.recent_message_views(RECENT_MESSAGES_LIMIT),
        )
