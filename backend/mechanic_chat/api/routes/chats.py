"""
Chat Routes for Mechanic Chat

User-facing endpoints for chat sessions, messages and attachments.
Clients poll these; there is no push channel.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile, status

from mechanic_chat.api.dependencies import (
    get_attachment_service,
    get_chat_service,
    get_current_user,
    get_notifier,
)
from mechanic_chat.domain.chat import (
    CreateSessionRequest,
    MessageView,
    SendMessageRequest,
    SessionPreview,
    SessionView,
)
from mechanic_chat.infrastructure.db.models.user import User
from mechanic_chat.infrastructure.services.attachment_service import AttachmentService
from mechanic_chat.infrastructure.services.chat_service import ChatService
from mechanic_chat.infrastructure.services.notification_service import NotificationService


logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Sessions
# ============================================================================

@router.post(
    "/chat/sessions",
    response_model=SessionView,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    body: CreateSessionRequest,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Open a consultation. Requires an active subscription (402 otherwise)."""
    return await service.create_session(user, body.vehicle_info)


@router.get("/chat/sessions", response_model=List[SessionPreview])
async def list_sessions(
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """The caller's sessions with previews, most recently active first."""
    return await service.list_user_sessions(user)


@router.get("/chat/sessions/{session_id}", response_model=SessionView)
async def get_session(
    session_id: UUID,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.get_session(user, session_id)


# ============================================================================
# Messages
# ============================================================================

@router.post(
    "/chat/sessions/{session_id}/messages",
    response_model=MessageView,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    session_id: UUID,
    body: SendMessageRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
    notifier: NotificationService = Depends(get_notifier),
):
    """
    Send a message into one of the caller's sessions.

    The caller's first message in a session notifies staff after the
    response is sent; notifier failures never affect this request.
    """
    message = await service.append_message(user, session_id, body.content)
    await _notify_if_first(background_tasks, service, notifier, user, session_id, message)
    return message


@router.get("/chat/sessions/{session_id}/messages", response_model=List[MessageView])
async def list_messages(
    session_id: UUID,
    user: User = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """Messages in send order. Marks the other party's messages as read."""
    return await service.get_session_messages(user, session_id)


# ============================================================================
# Attachments
# ============================================================================

@router.post(
    "/chat/sessions/{session_id}/attachments",
    response_model=MessageView,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    session_id: UUID,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    service: AttachmentService = Depends(get_attachment_service),
    chats: ChatService = Depends(get_chat_service),
    notifier: NotificationService = Depends(get_notifier),
):
    """
    Upload an image (up to 30 MiB) or video (up to 150 MiB).

    Returns the placeholder message the file is bound to. An upload that
    opens the caller's side of the conversation notifies staff like a
    first text message does.
    """
    message = await service.upload(user, session_id, file)
    await _notify_if_first(background_tasks, chats, notifier, user, session_id, message)
    return message


async def _notify_if_first(
    background_tasks: BackgroundTasks,
    chats: ChatService,
    notifier: NotificationService,
    user: User,
    session_id: UUID,
    message: MessageView,
) -> None:
    """Queue the staff e-mail when ``message`` is the caller's first in the session."""
    if await chats.first_message_in_session(session_id, user):
        background_tasks.add_task(
            notifier.notify_first_message,
            user.username,
            user.email,
            message.content,
            str(session_id),
        )
