"""
Chat Repository for Mechanic Chat

Repository for ChatSession and Message operations.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.infrastructure.db.models.base import utcnow
from mechanic_chat.infrastructure.db.models.chat_session import ChatSession
from mechanic_chat.infrastructure.db.models.message import Message


class ChatRepository:
    """
    Repository for chat-related database operations.

    Manages both ChatSession and Message entities.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    # =========================================================================
    # Session Operations
    # =========================================================================

    async def create_session(
        self,
        user_id: UUID,
        vehicle_info: Optional[str],
        now: Optional[datetime] = None,
    ) -> ChatSession:
        """
        Create a new active chat session.

        Args:
            user_id: Owning user
            vehicle_info: JSON-serialised vehicle context
            now: Creation time (defaults to the current time)

        Returns:
            Created ChatSession instance
        """
        now = now or utcnow()
        chat = ChatSession(
            user_id=user_id,
            vehicle_info=vehicle_info,
            status="active",
            created_at=now,
            last_activity=now,
        )
        self._session.add(chat)
        await self._session.flush()
        await self._session.refresh(chat)
        return chat

    async def get_session(self, session_id: UUID) -> Optional[ChatSession]:
        return await self._session.get(ChatSession, session_id)

    async def get_user_sessions(self, user_id: UUID) -> List[ChatSession]:
        stmt = (
            select(ChatSession)
            .where(ChatSession.user_id == user_id)
            .order_by(ChatSession.last_activity.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_sessions_by_status(self, status: str) -> List[ChatSession]:
        stmt = (
            select(ChatSession)
            .where(ChatSession.status == status)
            .order_by(ChatSession.last_activity.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count_sessions(self, status: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(ChatSession)
        if status is not None:
            stmt = stmt.where(ChatSession.status == status)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def set_status(self, session_id: UUID, status: str) -> Optional[ChatSession]:
        """
        Update a session's status.

        Returns:
            Updated ChatSession or None if not found
        """
        chat = await self.get_session(session_id)
        if not chat:
            return None

        chat.status = status
        self._session.add(chat)
        await self._session.flush()
        await self._session.refresh(chat)
        return chat

    # =========================================================================
    # Message Operations
    # =========================================================================

    async def _next_seq(self, session_id: UUID, now: datetime) -> int:
        """
        Reserve the next per-session sequence number.

        The increment happens in the database so concurrent appends into the
        same session each get a distinct value. Also bumps ``last_activity``.
        """
        stmt = (
            update(ChatSession)
            .where(ChatSession.id == session_id)
            .values(
                message_seq=ChatSession.message_seq + 1,
                last_activity=now,
            )
            .returning(ChatSession.message_seq)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def add_message(
        self,
        session_id: UUID,
        sender_id: Optional[UUID],
        sender_type: str,
        content: str,
        is_read: bool = False,
        now: Optional[datetime] = None,
    ) -> Message:
        """
        Append a message to a session.

        Args:
            session_id: Parent session
            sender_id: Author, None for bot turns
            sender_type: user, admin or bot
            content: Message content
            is_read: Initial read flag
            now: Creation time (defaults to the current time)

        Returns:
            Created Message instance
        """
        now = now or utcnow()
        seq = await self._next_seq(session_id, now)

        message = Message(
            session_id=session_id,
            sender_id=sender_id,
            sender_type=sender_type,
            content=content,
            is_read=is_read,
            seq=seq,
            created_at=now,
        )
        self._session.add(message)
        await self._session.flush()
        await self._session.refresh(message)

        # The UPDATE bypassed the identity map
        chat = await self.get_session(session_id)
        if chat is not None:
            await self._session.refresh(chat)
        return message

    async def get_message(self, message_id: UUID) -> Optional[Message]:
        return await self._session.get(Message, message_id)

    async def delete_message(self, message_id: UUID) -> bool:
        message = await self.get_message(message_id)
        if not message:
            return False

        await self._session.delete(message)
        await self._session.flush()
        return True

    async def get_session_messages(self, session_id: UUID) -> List[Message]:
        """
        Get all messages for a session in send order.

        Args:
            session_id: The session's UUID

        Returns:
            List of messages, oldest first
        """
        stmt = (
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.created_at.asc(), Message.seq.asc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_last_message(self, session_id: UUID) -> Optional[Message]:
        stmt = (
            select(Message)
            .where(Message.session_id == session_id)
            .order_by(Message.created_at.desc(), Message.seq.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_recent_messages(self, limit: int = 20) -> List[Message]:
        """Newest messages across all sessions (admin dashboard)."""
        stmt = (
            select(Message)
            .order_by(Message.created_at.desc(), Message.seq.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def mark_read(self, message_id: UUID) -> bool:
        """
        Flip a message to read. Idempotent.

        Returns:
            False if the message does not exist
        """
        stmt = (
            update(Message)
            .where(Message.id == message_id)
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount > 0

    async def mark_read_not_from(self, session_id: UUID, reader_type: str) -> int:
        """
        Mark every unread message in a session not authored by ``reader_type``.

        Returns:
            Number of messages flipped
        """
        stmt = (
            update(Message)
            .where(Message.session_id == session_id)
            .where(Message.is_read.is_(False))
            .where(Message.sender_type != reader_type)
            .execution_options(synchronize_session=False)
            .values(is_read=True)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount

    # =========================================================================
    # Counters
    # =========================================================================

    async def count_messages_by_session(self, session_ids: List[UUID]) -> Dict[UUID, int]:
        if not session_ids:
            return {}
        stmt = (
            select(Message.session_id, func.count())
            .where(Message.session_id.in_(session_ids))
            .group_by(Message.session_id)
        )
        result = await self._session.execute(stmt)
        return {row[0]: row[1] for row in result.all()}

    async def count_unread_by_session(
        self,
        session_ids: List[UUID],
        reader_type: str,
    ) -> Dict[UUID, int]:
        """Unread messages per session that ``reader_type`` did not author."""
        if not session_ids:
            return {}
        stmt = (
            select(Message.session_id, func.count())
            .where(Message.session_id.in_(session_ids))
            .where(Message.is_read.is_(False))
            .where(Message.sender_type != reader_type)
            .group_by(Message.session_id)
        )
        result = await self._session.execute(stmt)
        return {row[0]: row[1] for row in result.all()}

    async def count_unread(self, reader_type: str) -> int:
        """Unread messages across all sessions for ``reader_type``."""
        stmt = (
            select(func.count())
            .select_from(Message)
            .where(Message.is_read.is_(False))
            .where(Message.sender_type != reader_type)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def count_messages(self) -> int:
        stmt = select(func.count()).select_from(Message)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def count_sent_by(self, session_id: UUID, sender_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(Message)
            .where(Message.session_id == session_id)
            .where(Message.sender_id == sender_id)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()
