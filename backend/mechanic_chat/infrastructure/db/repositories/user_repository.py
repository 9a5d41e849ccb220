"""
User Repository for Mechanic Chat

Data access for users and their server-side auth sessions.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.infrastructure.db.models.base import utcnow
from mechanic_chat.infrastructure.db.models.user import AuthSession, User
from mechanic_chat.infrastructure.db.repositories.base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.lower())
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        stmt = select(User).where(User.username == username)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_admin(self) -> Optional[User]:
        stmt = select(User).where(User.is_admin.is_(True)).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(self, ids: List[UUID]) -> List[User]:
        """Load several users at once (sender enrichment)."""
        if not ids:
            return []
        stmt = select(User).where(User.id.in_(ids))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_customers(self) -> List[User]:
        """All non-admin users, newest first."""
        stmt = (
            select(User)
            .where(User.is_admin.is_(False))
            .order_by(User.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def set_presence(
        self,
        user_id: UUID,
        is_online: bool,
        seen_at: Optional[datetime] = None,
    ) -> bool:
        """
        Overwrite the presence cache.

        Returns:
            False if the user does not exist
        """
        values = {"is_online": is_online}
        if seen_at is not None:
            values["last_seen"] = seen_at
        stmt = update(User).where(User.id == user_id).values(**values)
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount > 0

    async def set_subscription_flag(self, user_id: UUID, value: bool) -> None:
        stmt = update(User).where(User.id == user_id).values(has_subscription=value)
        await self._session.execute(stmt)
        await self._session.flush()

    async def count_online_customers(self, seen_after: Optional[datetime] = None) -> int:
        stmt = (
            select(func.count())
            .select_from(User)
            .where(User.is_online.is_(True))
            .where(User.is_admin.is_(False))
        )
        if seen_after is not None:
            stmt = stmt.where(User.last_seen >= seen_after)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def count_customers(self) -> int:
        stmt = select(func.count()).select_from(User).where(User.is_admin.is_(False))
        result = await self._session.execute(stmt)
        return result.scalar_one()


class AuthSessionRepository:
    """Repository for server-side auth sessions."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(
        self,
        token: str,
        user_id: UUID,
        is_admin: bool,
        expires_at: datetime,
    ) -> AuthSession:
        auth_session = AuthSession(
            token=token,
            user_id=user_id,
            is_admin=is_admin,
            expires_at=expires_at,
        )
        self._session.add(auth_session)
        await self._session.flush()
        return auth_session

    async def get_valid(
        self,
        token: str,
        is_admin: bool,
        now: Optional[datetime] = None,
    ) -> Optional[AuthSession]:
        """Unexpired session for ``token`` in the requested namespace."""
        stmt = (
            select(AuthSession)
            .where(AuthSession.token == token)
            .where(AuthSession.is_admin.is_(is_admin))
            .where(AuthSession.expires_at > (now or utcnow()))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def revoke(self, token: str) -> None:
        """Delete a token if present."""
        await self._session.execute(delete(AuthSession).where(AuthSession.token == token))
        await self._session.flush()

    async def purge_expired(self, now: datetime) -> int:
        """Delete every token whose ``expires_at`` has passed. Returns the count."""
        stmt = (
            delete(AuthSession)
            .where(AuthSession.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount
