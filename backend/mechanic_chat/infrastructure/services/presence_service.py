"""
Presence Service

Best-effort online state and the admin live counters. ``User.is_online``
is a display cache overwritten by login, logout and heartbeat; counters
are aggregated from the source tables on every call.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.config.settings import get_settings
from mechanic_chat.domain.access import authenticate
from mechanic_chat.domain.chat import SenderType, SessionStatus
from mechanic_chat.domain.presence import LiveCounters, online_cutoff
from mechanic_chat.infrastructure.db.models.base import utcnow
from mechanic_chat.infrastructure.db.repositories.chat_repository import ChatRepository
from mechanic_chat.infrastructure.db.repositories.user_repository import UserRepository


logger = logging.getLogger(__name__)


class PresenceService:
    """Heartbeat, login/logout presence and live counters."""

    def __init__(self, session: AsyncSession):
        self._users = UserRepository(session)
        self._chats = ChatRepository(session)
        self._stale_seconds = get_settings().presence_stale_seconds

    async def heartbeat(self, user, now: Optional[datetime] = None) -> datetime:
        """Mark the caller online as of ``now``."""
        user = authenticate(user)
        now = now or utcnow()
        await self._users.set_presence(user.id, True, now)
        return now

    async def mark_online(self, user, now: Optional[datetime] = None) -> None:
        await self._users.set_presence(user.id, True, now or utcnow())

    async def mark_offline(self, user, now: Optional[datetime] = None) -> None:
        await self._users.set_presence(user.id, False, now or utcnow())

    async def count_online(self, now: datetime) -> int:
        return await self._users.count_online_customers(
            seen_after=online_cutoff(now, self._stale_seconds)
        )

    async def live_counters(self, now: Optional[datetime] = None) -> LiveCounters:
        """
        Admin live data.

        ``unread_count`` is every message an admin has not read, across all
        sessions. ``online_user_count`` excludes admins and heartbeats older
        than ``presence_stale_seconds``.
        """
        now = now or utcnow()
        return LiveCounters(
            unread_count=await self._chats.count_unread(SenderType.ADMIN.value),
            active_session_count=await self._chats.count_sessions(SessionStatus.ACTIVE.value),
            online_user_count=await self.count_online(now),
            as_of=now,
        )
