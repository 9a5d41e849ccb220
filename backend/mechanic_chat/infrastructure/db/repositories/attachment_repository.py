"""
Attachment Repository for Mechanic Chat

Metadata rows for uploaded blobs. Deletion is always "delete if exists" so
the lazy-expiry path and the sweep can race without coordination.
"""

from datetime import datetime
from typing import Collection, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.infrastructure.db.models.attachment import Attachment


class AttachmentRepository:
    """Repository for Attachment rows."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, attachment: Attachment) -> Attachment:
        self._session.add(attachment)
        await self._session.flush()
        await self._session.refresh(attachment)
        return attachment

    async def get_by_file_name(self, file_name: str) -> Optional[Attachment]:
        stmt = select(Attachment).where(Attachment.file_name == file_name)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_messages(self, message_ids: List[UUID]) -> Dict[UUID, List[Attachment]]:
        """
        Attachments grouped by owning message.

        Args:
            message_ids: Messages to look up

        Returns:
            Mapping of message id to its attachments
        """
        if not message_ids:
            return {}
        stmt = select(Attachment).where(Attachment.message_id.in_(message_ids))
        result = await self._session.execute(stmt)

        grouped: Dict[UUID, List[Attachment]] = {}
        for attachment in result.scalars().all():
            grouped.setdefault(attachment.message_id, []).append(attachment)
        return grouped

    async def list_expired(
        self,
        now: datetime,
        limit: int = 500,
        exclude_ids: Collection[UUID] = (),
    ) -> List[Attachment]:
        """Oldest expired attachments first, skipping ``exclude_ids``."""
        stmt = select(Attachment).where(Attachment.expires_at <= now)
        if exclude_ids:
            stmt = stmt.where(Attachment.id.notin_(list(exclude_ids)))
        stmt = (
            stmt
            .order_by(Attachment.expires_at.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def delete_if_exists(self, attachment_id: UUID) -> bool:
        """
        Delete an attachment row by id.

        Returns:
            True if a row was removed, False if it was already gone
        """
        stmt = (
            delete(Attachment)
            .where(Attachment.id == attachment_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount > 0
