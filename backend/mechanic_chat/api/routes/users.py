"""
User Account Routes

Registration, login/logout, identity and presence heartbeat.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel

from mechanic_chat.api.dependencies import (
    clear_session_cookie,
    get_auth_service,
    get_current_user,
    get_presence_service,
    set_session_cookie,
    user_cookie_token,
)
from mechanic_chat.domain.users import LoginRequest, MeResponse, RegisterRequest, UserView
from mechanic_chat.infrastructure.db.models.user import User
from mechanic_chat.infrastructure.services.auth_service import AuthService
from mechanic_chat.infrastructure.services.presence_service import PresenceService


logger = logging.getLogger(__name__)

router = APIRouter()


class HeartbeatResponse(BaseModel):
    """Acknowledgement of a presence heartbeat."""
    is_online: bool = True
    last_seen: datetime


# =============================================================================
# Accounts
# =============================================================================

@router.post("/users/register", response_model=UserView, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    """
    Create an account and start a session for it.

    Returns 409 if the e-mail or username is taken.
    """
    user, token = await auth.register(body, presented_token=user_cookie_token(request))
    set_session_cookie(response, token)
    return UserView.model_validate(user)


@router.post("/users/login", response_model=UserView)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    """Log in; any previously presented token is revoked and a new one issued."""
    user, token = await auth.login(
        body.email, body.password, presented_token=user_cookie_token(request)
    )
    set_session_cookie(response, token)
    return UserView.model_validate(user)


@router.post("/users/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
):
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    await auth.logout(user_cookie_token(request), is_admin=False)
    clear_session_cookie(response)
    return response


@router.get("/users/me", response_model=MeResponse)
async def me(
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    """Current identity with subscription state derived from the ledger."""
    return await auth.me(user)


# =============================================================================
# Presence
# =============================================================================

@router.post("/users/heartbeat", response_model=HeartbeatResponse)
async def heartbeat(
    user: User = Depends(get_current_user),
    presence: PresenceService = Depends(get_presence_service),
):
    """Called by clients every ~30s to stay online."""
    seen = await presence.heartbeat(user)
    return HeartbeatResponse(last_seen=seen)
