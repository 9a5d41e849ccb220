"""
Admin Console Routes

Everything under /admin except login requires the admin session cookie.
Admins see every session; no ownership check applies to them.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status

from mechanic_chat.api.dependencies import (
    admin_cookie_token,
    clear_session_cookie,
    get_admin_service,
    get_auth_service,
    get_chat_service,
    get_current_admin,
    get_presence_service,
    get_subscription_service,
    set_session_cookie,
)
from mechanic_chat.domain.chat import MessageView, SendMessageRequest, SessionPreview, SessionView
from mechanic_chat.domain.presence import DashboardResponse, LiveCounters
from mechanic_chat.domain.subscription import GrantSubscriptionRequest, Subscription
from mechanic_chat.domain.users import LoginRequest, UserView
from mechanic_chat.infrastructure.db.models.user import User
from mechanic_chat.infrastructure.services.admin_service import AdminService
from mechanic_chat.infrastructure.services.auth_service import AuthService
from mechanic_chat.infrastructure.services.chat_service import ChatService
from mechanic_chat.infrastructure.services.presence_service import PresenceService
from mechanic_chat.infrastructure.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# Admin Session
# =============================================================================

@router.post("/login", response_model=UserView)
async def admin_login(
    body: LoginRequest,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    """Log in to the admin namespace (separate cookie from user login)."""
    admin, token = await auth.admin_login(
        body.email, body.password, presented_token=admin_cookie_token(request)
    )
    set_session_cookie(response, token, is_admin=True)
    logger.info(f"Admin {admin.id} logged in")
    return UserView.model_validate(admin)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def admin_logout(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
):
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    await auth.logout(admin_cookie_token(request), is_admin=True)
    clear_session_cookie(response, is_admin=True)
    return response


# =============================================================================
# Console
# =============================================================================

@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return await service.dashboard(admin)


@router.get("/users", response_model=List[UserView])
async def list_users(
    admin: User = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    """Customers only, without credentials."""
    return await service.list_users(admin)


@router.post(
    "/subscriptions",
    response_model=Subscription,
    status_code=status.HTTP_201_CREATED,
)
async def grant_subscription(
    body: GrantSubscriptionRequest,
    admin: User = Depends(get_current_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Manual grant without payment verification."""
    return await service.grant(admin, body)


@router.get("/live-data", response_model=LiveCounters)
async def live_data(
    admin: User = Depends(get_current_admin),
    presence: PresenceService = Depends(get_presence_service),
):
    """Counters recomputed on every poll."""
    return await presence.live_counters()


# =============================================================================
# Chats
# =============================================================================

@router.get("/chats", response_model=List[SessionPreview])
async def list_chats(
    admin: User = Depends(get_current_admin),
    service: ChatService = Depends(get_chat_service),
):
    return await service.list_active_sessions(admin)


@router.get("/chats/{session_id}/messages", response_model=List[MessageView])
async def list_chat_messages(
    session_id: UUID,
    admin: User = Depends(get_current_admin),
    service: ChatService = Depends(get_chat_service),
):
    """Messages in send order. Marks customer messages as read."""
    return await service.get_session_messages(admin, session_id)


@router.post(
    "/chats/{session_id}/messages",
    response_model=MessageView,
    status_code=status.HTTP_201_CREATED,
)
async def send_chat_message(
    session_id: UUID,
    body: SendMessageRequest,
    admin: User = Depends(get_current_admin),
    service: ChatService = Depends(get_chat_service),
):
    """Reply as the mechanic. Inserted already read."""
    return await service.append_message(admin, session_id, body.content)


@router.post("/chats/{session_id}/close", response_model=SessionView)
async def close_chat(
    session_id: UUID,
    admin: User = Depends(get_current_admin),
    service: ChatService = Depends(get_chat_service),
):
    return await service.close_session(admin, session_id)


@router.patch("/messages/{message_id}/read", response_model=MessageView)
async def mark_message_read(
    message_id: UUID,
    admin: User = Depends(get_current_admin),
    service: ChatService = Depends(get_chat_service),
):
    return await service.mark_read(admin, message_id)
