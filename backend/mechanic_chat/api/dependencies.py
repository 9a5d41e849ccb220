"""
API Dependencies

FastAPI dependency injection for authentication and services.

Security: the auth cookie carries only an opaque token. Identity is always
resolved from the server-side ``auth_sessions`` table, never from anything
else the client sends. User and admin tokens use separate cookies and
separate namespaces.
"""

import logging
from typing import Optional

from fastapi import Depends, Request, Response
from mechanic_chat.config.settings import get_settings
from mechanic_chat.domain.access import authenticate, authorize_admin
from mechanic_chat.infrastructure.db.dependencies import SessionDep
from mechanic_chat.infrastructure.db.models.user import User
from mechanic_chat.infrastructure.services.admin_service import AdminService
from mechanic_chat.infrastructure.services.attachment_service import AttachmentService
from mechanic_chat.infrastructure.services.auth_service import AuthService
from mechanic_chat.infrastructure.services.chat_service import ChatService
from mechanic_chat.infrastructure.services.notification_service import (
    NotificationService,
    get_notification_service,
)
from mechanic_chat.infrastructure.services.presence_service import PresenceService
from mechanic_chat.infrastructure.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)


# =============================================================================
# Services
# =============================================================================

async def get_auth_service(session: SessionDep) -> AuthService:
    return AuthService(session)


async def get_subscription_service(
    session: SessionDep,
) -> SubscriptionService:
    return SubscriptionService(session)


async def get_chat_service(session: SessionDep) -> ChatService:
    return ChatService(session)


async def get_attachment_service(
    session: SessionDep,
) -> AttachmentService:
    return AttachmentService(session)


async def get_presence_service(
    session: SessionDep,
) -> PresenceService:
    return PresenceService(session)


async def get_admin_service(session: SessionDep) -> AdminService:
    return AdminService(session)


def get_notifier() -> NotificationService:
    return get_notification_service()


# =============================================================================
# Cookies
# =============================================================================

def user_cookie_token(request: Request) -> Optional[str]:
    return request.cookies.get(get_settings().session_cookie_name)


def admin_cookie_token(request: Request) -> Optional[str]:
    return request.cookies.get(get_settings().admin_session_cookie_name)


def set_session_cookie(response: Response, token: str, is_admin: bool = False) -> None:
    """Attach an auth token as an httpOnly cookie."""
    settings = get_settings()
    response.set_cookie(
        key=settings.admin_session_cookie_name if is_admin else settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        secure=bool(settings.session_cookie_secure),
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response, is_admin: bool = False) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.admin_session_cookie_name if is_admin else settings.session_cookie_name,
        path="/",
    )


# =============================================================================
# Identity
# =============================================================================

async def get_optional_user(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> Optional[User]:
    """
    Resolve the user behind the session cookie.

    Returns ``None`` if no valid token is presented (for public endpoints).
    """
    return await auth.resolve(user_cookie_token(request), is_admin=False)


async def get_current_user(
    user: Optional[User] = Depends(get_optional_user),
) -> User:
    """
    Require an authenticated user.

    Raises:
        UnauthenticatedError: token missing, expired, or revoked.
    """
    return authenticate(user)


async def get_current_admin(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> User:
    """
    Require an authenticated administrator via the admin cookie.

    Raises:
        ForbiddenError: no valid admin session.
    """
    admin = await auth.resolve(admin_cookie_token(request), is_admin=True)
    return authorize_admin(admin)

