"""
Auth Service

Registration, login/logout and identity resolution over server-side auth
sessions. The cookie only ever holds an opaque token; everything the
request is allowed to do is resolved from the ``auth_sessions`` row.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.config.settings import get_settings
from mechanic_chat.domain.subscription import active_until, days_remaining
from mechanic_chat.domain.users import MeResponse, RegisterRequest, UserView
from mechanic_chat.infrastructure.db.models.base import utcnow
from mechanic_chat.infrastructure.db.models.user import User
from mechanic_chat.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from mechanic_chat.infrastructure.db.repositories.user_repository import (
    AuthSessionRepository,
    UserRepository,
)
from mechanic_chat.infrastructure.exceptions import (
    ConflictError,
    UnauthenticatedError,
)
from mechanic_chat.infrastructure.security import (
    hash_password,
    new_session_token,
    verify_password,
)
from mechanic_chat.infrastructure.services.presence_service import PresenceService


logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """
    Service for account and auth-session business logic.

    User and admin tokens live in separate namespaces: a token minted by
    ``admin_login`` never resolves on user endpoints and vice versa.
    """

    def __init__(self, session: AsyncSession):
        self._session = session
        self._users = UserRepository(session)
        self._tokens = AuthSessionRepository(session)
        self._subscriptions = SubscriptionRepository(session)
        self._presence = PresenceService(session)
        self._ttl = timedelta(hours=get_settings().session_ttl_hours)

    # =========================================================================
    # Accounts
    # =========================================================================

    async def register(
        self,
        request: RegisterRequest,
        presented_token: Optional[str] = None,
    ) -> Tuple[User, str]:
        """
        Create an account and log it in.

        Raises:
            ConflictError: E-mail or username already taken
        """
        if await self._users.get_by_email(request.email):
            raise ConflictError("Email is already registered", operation="register", table="users")
        if await self._users.get_by_username(request.username):
            raise ConflictError("Username is already taken", operation="register", table="users")

        user = await self._users.add(
            User(
                username=request.username,
                email=request.email.lower(),
                password_hash=hash_password(request.password),
            )
        )
        logger.info(f"Registered user {user.id}")

        token = await self._start_session(user, is_admin=False, presented_token=presented_token)
        return user, token

    async def bootstrap_admin(self) -> Optional[User]:
        """
        Create the single administrator from configured credentials.

        Does nothing when an admin already exists or credentials are unset.
        """
        settings = get_settings()
        if not settings.admin_email or not settings.admin_password:
            logger.info("Admin bootstrap skipped: credentials not configured")
            return None

        existing = await self._users.get_admin()
        if existing is not None:
            return None

        if await self._users.get_by_email(settings.admin_email):
            logger.warning("Admin bootstrap skipped: e-mail belongs to a regular user")
            return None

        admin = await self._users.add(
            User(
                username=settings.admin_username,
                email=settings.admin_email,
                password_hash=hash_password(settings.admin_password),
                is_admin=True,
            )
        )
        logger.info(f"Bootstrapped admin user {admin.id}")
        return admin

    # =========================================================================
    # Sessions
    # =========================================================================

    async def login(
        self,
        email: str,
        password: str,
        presented_token: Optional[str] = None,
    ) -> Tuple[User, str]:
        """
        Verify credentials for a customer account and issue a fresh token.

        Raises:
            UnauthenticatedError: Unknown e-mail, wrong password or an admin account
        """
        user = await self._check_credentials(email, password)
        if user.is_admin:
            raise UnauthenticatedError(INVALID_CREDENTIALS)
        token = await self._start_session(user, is_admin=False, presented_token=presented_token)
        return user, token

    async def admin_login(
        self,
        email: str,
        password: str,
        presented_token: Optional[str] = None,
    ) -> Tuple[User, str]:
        """Same as :meth:`login`, for the admin namespace."""
        user = await self._check_credentials(email, password)
        if not user.is_admin:
            raise UnauthenticatedError(INVALID_CREDENTIALS)
        token = await self._start_session(user, is_admin=True, presented_token=presented_token)
        return user, token

    async def logout(self, token: Optional[str], is_admin: bool = False) -> None:
        """Revoke ``token`` and mark its owner offline. Unknown tokens are ignored."""
        if not token:
            return
        auth_session = await self._tokens.get_valid(token, is_admin)
        await self._tokens.revoke(token)
        if auth_session is not None:
            user = await self._users.get_by_id(auth_session.user_id)
            if user is not None:
                await self._presence.mark_offline(user)

    async def resolve(
        self,
        token: Optional[str],
        is_admin: bool = False,
        now: Optional[datetime] = None,
    ) -> Optional[User]:
        """User behind a token, or None for a missing, expired or foreign-namespace token."""
        if not token:
            return None
        auth_session = await self._tokens.get_valid(token, is_admin, now)
        if auth_session is None:
            return None
        user = await self._users.get_by_id(auth_session.user_id)
        if user is None or user.is_admin != is_admin:
            return None
        return user

    async def me(self, user: User, now: Optional[datetime] = None) -> MeResponse:
        """Identity plus entitlement derived from the ledger."""
        now = now or utcnow()
        subscriptions = await self._subscriptions.list_for_user(user.id)
        expires_at = active_until(subscriptions, now)
        return MeResponse(
            user=UserView.model_validate(user),
            has_active_subscription=expires_at is not None,
            subscription_expires_at=expires_at,
            days_remaining=days_remaining(expires_at, now),
        )

    async def purge_expired_sessions(self, now: Optional[datetime] = None) -> int:
        """Drop auth sessions that can no longer resolve."""
        purged = await self._tokens.purge_expired(now or utcnow())
        if purged:
            logger.info(f"Purged {purged} expired auth sessions")
        return purged

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _check_credentials(self, email: str, password: str) -> User:
        user = await self._users.get_by_email(email.strip().lower())
        if user is None or not verify_password(password, user.password_hash):
            raise UnauthenticatedError(INVALID_CREDENTIALS)
        return user

    async def _start_session(
        self,
        user: User,
        is_admin: bool,
        presented_token: Optional[str],
    ) -> str:
        """Revoke whatever token the client presented and mint a new one."""
        if presented_token:
            await self._tokens.revoke(presented_token)

        now = utcnow()
        token = new_session_token()
        await self._tokens.create(token, user.id, is_admin, now + self._ttl)
        await self._presence.mark_online(user, now)
        await self._session.refresh(user)
        return token
