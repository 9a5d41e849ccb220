"""
Chat Service for Mechanic Chat

Business logic for the chat session registry and the message log:
ownership checks, read-model enrichment, unread accounting and
auto-read-on-view.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.domain.access import (
    authenticate,
    authorize_admin,
    authorize_session_ownership,
)
from mechanic_chat.domain.chat import (
    AttachmentView,
    LastMessagePreview,
    MessageView,
    SenderType,
    SenderView,
    SessionPreview,
    SessionStatus,
    SessionView,
    effective_last_activity,
    sort_previews,
)
from mechanic_chat.infrastructure.db.models.attachment import Attachment
from mechanic_chat.infrastructure.db.models.base import utcnow
from mechanic_chat.infrastructure.db.models.chat_session import ChatSession
from mechanic_chat.infrastructure.db.models.message import Message
from mechanic_chat.infrastructure.db.repositories.attachment_repository import (
    AttachmentRepository,
)
from mechanic_chat.infrastructure.db.repositories.chat_repository import ChatRepository
from mechanic_chat.infrastructure.db.repositories.user_repository import UserRepository
from mechanic_chat.infrastructure.exceptions import ForbiddenError, NotFoundError
from mechanic_chat.infrastructure.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)

ATTACHMENT_URL_PREFIX = "/api/attachments/"
PREVIEW_LENGTH = 200


def reader_type(user) -> SenderType:
    """The party a caller reads as."""
    return SenderType.ADMIN if user.is_admin else SenderType.USER


def parse_vehicle_info(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


def attachment_view(attachment: Attachment) -> AttachmentView:
    return AttachmentView(
        id=attachment.id,
        file_name=attachment.file_name,
        original_name=attachment.original_name,
        file_size=attachment.file_size,
        mime_type=attachment.mime_type,
        url=f"{ATTACHMENT_URL_PREFIX}{attachment.file_name}",
        uploaded_at=attachment.uploaded_at,
        expires_at=attachment.expires_at,
    )


def session_view(chat: ChatSession) -> SessionView:
    return SessionView(
        id=chat.id,
        user_id=chat.user_id,
        vehicle_info=parse_vehicle_info(chat.vehicle_info),
        status=SessionStatus(chat.status),
        created_at=chat.created_at,
        last_activity=chat.last_activity,
    )


class ChatService:
    """
    Service for chat business logic.

    Every public method takes the already-authenticated caller and applies
    the access gate itself, so routers cannot forget a check.
    """

    def __init__(
        self,
        session: AsyncSession,
        subscription_service: Optional[SubscriptionService] = None,
    ):
        self._session = session
        self._repository = ChatRepository(session)
        self._attachments = AttachmentRepository(session)
        self._users = UserRepository(session)
        self._subscriptions = subscription_service or SubscriptionService(session)

    # =========================================================================
    # Session Registry
    # =========================================================================

    async def create_session(
        self,
        user,
        vehicle_info: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> SessionView:
        """
        Open a new consultation owned by ``user``.

        Raises:
            UnauthenticatedError: No caller
            SubscriptionRequiredError: Caller has no active subscription
        """
        user = authenticate(user)
        now = now or utcnow()
        await self._subscriptions.require_active(user, now)

        chat = await self._repository.create_session(
            user_id=user.id,
            vehicle_info=json.dumps(vehicle_info or {}),
            now=now,
        )
        logger.info(f"User {user.id} opened chat session {chat.id}")
        return session_view(chat)

    async def get_session(self, user, session_id: UUID) -> SessionView:
        chat = await self._load_owned(user, session_id)
        return session_view(chat)

    async def list_user_sessions(
        self,
        user,
        now: Optional[datetime] = None,
    ) -> List[SessionPreview]:
        """
        The caller's sessions with previews, most recently active first.

        Raises:
            SubscriptionRequiredError: Caller has no active subscription
        """
        user = authenticate(user)
        await self._subscriptions.require_active(user, now)
        chats = await self._repository.get_user_sessions(user.id)
        return await self._previews(chats, SenderType.USER)

    async def list_active_sessions(self, admin) -> List[SessionPreview]:
        """Every active session across all users, for the admin console."""
        authorize_admin(admin)
        chats = await self._repository.get_sessions_by_status(SessionStatus.ACTIVE.value)
        return await self._previews(chats, SenderType.ADMIN, include_user=True)

    async def close_session(self, admin, session_id: UUID) -> SessionView:
        authorize_admin(admin)
        chat = await self._repository.set_status(session_id, SessionStatus.CLOSED.value)
        if chat is None:
            raise NotFoundError("Chat session not found", table="chat_sessions")
        logger.info(f"Admin {admin.id} closed chat session {session_id}")
        return session_view(chat)

    # =========================================================================
    # Message Log
    # =========================================================================

    async def append_message(
        self,
        user,
        session_id: UUID,
        content: str,
        now: Optional[datetime] = None,
    ) -> MessageView:
        """
        Append a message from ``user`` to a session.

        Admin messages are inserted already read; everything else starts
        unread. Bumps the session's ``last_activity``.

        Raises:
            NotFoundError: Missing session, or one the caller does not own
            ForbiddenError: A non-admin writing into a closed session
        """
        chat = await self._load_owned(user, session_id)
        message = await self.append_to(user, chat, content, now)
        return await self.message_view(message)

    async def append_to(
        self,
        user,
        chat: ChatSession,
        content: str,
        now: Optional[datetime] = None,
    ) -> Message:
        """Raw append into a session the caller has already been authorized for."""
        if chat.status == SessionStatus.CLOSED.value and not user.is_admin:
            raise ForbiddenError("This chat session is closed")

        sender_type = reader_type(user)
        return await self._repository.add_message(
            session_id=chat.id,
            sender_id=user.id,
            sender_type=sender_type.value,
            content=content,
            is_read=sender_type == SenderType.ADMIN,
            now=now,
        )

    async def get_session_messages(self, user, session_id: UUID) -> List[MessageView]:
        """
        Messages in send order, enriched with senders and attachments.

        Viewing marks the other party's unread messages as read.
        """
        chat = await self._load_owned(user, session_id)
        flipped = await self._repository.mark_read_not_from(chat.id, reader_type(user).value)
        if flipped:
            logger.debug(f"Marked {flipped} messages read in session {chat.id}")

        messages = await self._repository.get_session_messages(chat.id)
        return await self._message_views(messages)

    async def mark_read(self, admin, message_id: UUID) -> MessageView:
        """Idempotently flip one message to read."""
        authorize_admin(admin)
        if not await self._repository.mark_read(message_id):
            raise NotFoundError("Message not found", table="messages")

        message = await self._repository.get_message(message_id)
        await self._session.refresh(message)
        return await self.message_view(message)

    async def first_message_in_session(self, session_id: UUID, user) -> bool:
        """True when ``user`` has sent exactly one message into the session."""
        return await self._repository.count_sent_by(session_id, user.id) == 1

    async def message_view(self, message: Message) -> MessageView:
        return (await self._message_views([message]))[0]

    async def load_owned(self, user, session_id: UUID) -> ChatSession:
        """Session row after the ownership check, for sibling services."""
        return await self._load_owned(user, session_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _load_owned(self, user, session_id: UUID) -> ChatSession:
        user = authenticate(user)
        chat = await self._repository.get_session(session_id)
        return authorize_session_ownership(user, chat)

    async def _message_views(self, messages: List[Message]) -> List[MessageView]:
        """Attach public sender projections and attachment metadata."""
        sender_ids = list({m.sender_id for m in messages if m.sender_id is not None})
        senders = {u.id: u for u in await self._users.get_many(sender_ids)}
        attachments = await self._attachments.get_for_messages([m.id for m in messages])

        views = []
        for message in messages:
            sender = senders.get(message.sender_id)
            views.append(
                MessageView(
                    id=message.id,
                    session_id=message.session_id,
                    sender_id=message.sender_id,
                    sender_type=SenderType(message.sender_type),
                    content=message.content,
                    is_read=message.is_read,
                    created_at=message.created_at,
                    sender=SenderView.model_validate(sender) if sender else None,
                    attachments=[attachment_view(a) for a in attachments.get(message.id, [])],
                )
            )
        return views

    async def recent_message_views(self, limit: int = 20) -> List[MessageView]:
        return await self._message_views(await self._repository.get_recent_messages(limit))

    async def _previews(
        self,
        chats: List[ChatSession],
        reader: SenderType,
        include_user: bool = False,
    ) -> List[SessionPreview]:
        ids = [c.id for c in chats]
        counts = await self._repository.count_messages_by_session(ids)
        unread = await self._repository.count_unread_by_session(ids, reader.value)

        owners = {}
        if include_user:
            owners = {
                u.id: u for u in await self._users.get_many(list({c.user_id for c in chats}))
            }

        previews = []
        for chat in chats:
            last = await self._repository.get_last_message(chat.id)
            owner = owners.get(chat.user_id)
            previews.append(
                SessionPreview(
                    **session_view(chat).model_dump(),
                    last_message=LastMessagePreview(
                        content=last.content[:PREVIEW_LENGTH],
                        created_at=last.created_at,
                        sender_type=SenderType(last.sender_type),
                    ) if last else None,
                    message_count=counts.get(chat.id, 0),
                    unread_count=unread.get(chat.id, 0),
                    effective_last_activity=effective_last_activity(
                        chat.last_activity,
                        chat.created_at,
                        last.created_at if last else None,
                    ),
                    user=SenderView.model_validate(owner) if owner else None,
                )
            )
        return sort_previews(previews)
