"""
Attachment Service

Upload, serve and expiry sweep for chat attachments.

Uploads are a three-step sequence (blob, placeholder message, attachment
row) that must look atomic to the caller, so every step after the blob
write compensates for the steps before it on failure. Both deletion paths
(lazy-on-serve and the sweep) are "delete if exists" on the same key and
may race freely.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Tuple
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mechanic_chat.config.settings import get_settings
from mechanic_chat.domain.attachments import (
    is_expired,
    media_kind,
    placeholder_content,
    safe_original_name,
    size_limit,
    stored_extension,
)
from mechanic_chat.domain.chat import MessageView
from mechanic_chat.infrastructure.db.models.attachment import Attachment
from mechanic_chat.infrastructure.db.models.base import utcnow
from mechanic_chat.infrastructure.db.repositories.attachment_repository import (
    AttachmentRepository,
)
from mechanic_chat.infrastructure.db.repositories.chat_repository import ChatRepository
from mechanic_chat.infrastructure.exceptions import (
    InvalidAttachmentError,
    NotFoundError,
    StorageError,
)
from mechanic_chat.infrastructure.services.chat_service import ChatService
from mechanic_chat.infrastructure.services.file_storage import FileStorage, get_file_storage


logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one expiry sweep."""
    scanned: int = 0
    deleted: int = 0
    failed: int = 0


class AttachmentService:
    """Service for attachment business logic."""

    def __init__(
        self,
        session: AsyncSession,
        storage: Optional[FileStorage] = None,
        chat_service: Optional[ChatService] = None,
    ):
        self._session = session
        self._repository = AttachmentRepository(session)
        self._chats = ChatRepository(session)
        self._chat_service = chat_service or ChatService(session)
        self._storage = storage or get_file_storage()
        self._settings = get_settings()

    # =========================================================================
    # Upload
    # =========================================================================

    async def upload(
        self,
        user,
        session_id: UUID,
        upload: UploadFile,
        now: Optional[datetime] = None,
    ) -> MessageView:
        """
        Store a file and post it into a session as a placeholder message.

        Raises:
            NotFoundError: Missing session, or one the caller does not own
            InvalidAttachmentError: Disallowed mime type or too large
            StorageError: Filesystem failure
        """
        chat = await self._chat_service.load_owned(user, session_id)

        kind = media_kind(upload.content_type)
        if kind is None:
            raise InvalidAttachmentError(
                f"File type {upload.content_type or 'unknown'} is not allowed",
                field="file",
                constraint="mime_type",
            )
        max_bytes = size_limit(kind, self._settings.max_image_bytes, self._settings.max_video_bytes)

        original_name = safe_original_name(upload.filename)
        file_name = self._storage.generate_name(stored_extension(original_name))

        # Step 1: blob. Removes its own partial write on failure.
        file_size = await self._storage.save_upload(upload, file_name, max_bytes)

        # Step 2: placeholder message
        now = now or utcnow()
        try:
            message = await self._chat_service.append_to(
                user, chat, placeholder_content(original_name), now
            )
        except Exception:
            await self._storage.delete_if_exists(file_name)
            raise

        # Step 3: attachment row bound to the message
        try:
            await self._repository.create(
                Attachment(
                    message_id=message.id,
                    file_name=file_name,
                    original_name=original_name,
                    file_size=file_size,
                    mime_type=upload.content_type.lower(),
                    file_path=str(self._storage.path_for(file_name)),
                    uploaded_at=now,
                    expires_at=now + timedelta(days=self._settings.attachment_ttl_days),
                )
            )
        except Exception:
            await self._discard_message(message.id)
            await self._storage.delete_if_exists(file_name)
            raise

        logger.info(f"Stored attachment {file_name} ({file_size} bytes) in session {chat.id}")
        return await self._chat_service.message_view(message)

    async def _discard_message(self, message_id: UUID) -> None:
        """Remove a placeholder whose attachment could not be recorded."""
        try:
            await self._chats.delete_message(message_id)
        except SQLAlchemyError as e:
            # Flush failed; dropping the transaction also drops the message
            logger.warning(f"Rolling back placeholder message {message_id}: {e}")
            await self._session.rollback()

    # =========================================================================
    # Serve
    # =========================================================================

    async def serve(
        self,
        file_name: str,
        now: Optional[datetime] = None,
    ) -> Tuple[Attachment, Path]:
        """
        Resolve a stored file by name. The file name is the capability.

        An expired attachment is deleted on the spot and reported as missing.

        Raises:
            NotFoundError: Unknown, expired or physically missing file
        """
        now = now or utcnow()
        attachment = await self._repository.get_by_file_name(file_name)
        if attachment is None:
            raise NotFoundError("File not found", table="attachments")

        if is_expired(attachment.expires_at, now):
            try:
                await self._delete(attachment.id, attachment.file_name)
                # Persist the deletion before the not-found response rolls back
                await self._session.commit()
                logger.info(f"Expired attachment {file_name} removed on access")
            except StorageError as e:
                # Left for the sweep; the caller still sees a plain miss
                logger.error(f"Failed to remove expired attachment {file_name}: {e}")
            raise NotFoundError("File not found", table="attachments")

        path = self._storage.path_for(attachment.file_name)
        if not path.is_file():
            raise NotFoundError("File not found", table="attachments")
        return attachment, path

    # =========================================================================
    # Sweep
    # =========================================================================

    async def sweep_expired(
        self,
        now: Optional[datetime] = None,
        batch_size: int = 500,
    ) -> SweepResult:
        """
        Delete every attachment whose ``expires_at`` has passed.

        Works through the backlog in batches until none is left. Each
        attachment is committed on its own so one failure does not undo
        or stop the others; ids that failed are skipped for the rest of
        the run.
        """
        now = now or utcnow()
        result = SweepResult()
        failed_ids = set()

        while True:
            # Plain values: a rollback below expires every loaded row
            batch = [
                (a.id, a.file_name)
                for a in await self._repository.list_expired(
                    now, limit=batch_size, exclude_ids=failed_ids
                )
            ]
            if not batch:
                break

            for attachment_id, file_name in batch:
                result.scanned += 1
                try:
                    await self._delete(attachment_id, file_name)
                    await self._session.commit()
                    result.deleted += 1
                except (StorageError, SQLAlchemyError) as e:
                    await self._session.rollback()
                    failed_ids.add(attachment_id)
                    result.failed += 1
                    logger.error(
                        f"Failed to sweep attachment {attachment_id} ({file_name}): {e}"
                    )

        logger.info(
            f"Attachment sweep: scanned={result.scanned} "
            f"deleted={result.deleted} failed={result.failed}"
        )
        return result

    async def _delete(self, attachment_id: UUID, file_name: str) -> None:
        """Blob first, then the row; both tolerate being already gone."""
        await self._storage.delete_if_exists(file_name)
        await self._repository.delete_if_exists(attachment_id)
