"""
Attachment Blob Store

Flat directory of uploaded files keyed by generated file name. Writes are
streamed with a hard byte ceiling; deletes are idempotent.
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from mechanic_chat.config.settings import get_settings
from mechanic_chat.infrastructure.exceptions import InvalidAttachmentError, StorageError


logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class FileStorage:
    """
    Local-disk blob store rooted at ``base_dir``.

    Args:
        base_dir: Directory holding every blob; created on first use
    """

    def __init__(self, base_dir: str):
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def generate_name(self, extension: str = "") -> str:
        return f"{uuid.uuid4().hex}{extension}"

    def path_for(self, file_name: str) -> Path:
        """
        Absolute path of a stored blob.

        Raises:
            StorageError: If ``file_name`` would escape the store directory
        """
        if not file_name or os.path.basename(file_name) != file_name or file_name in (".", ".."):
            raise StorageError("Invalid stored file name", path=file_name)
        return self._base_dir / file_name

    async def save_upload(
        self,
        upload: UploadFile,
        file_name: str,
        max_bytes: int,
    ) -> int:
        """
        Stream an upload to disk, stopping as soon as it passes ``max_bytes``.

        A partially written blob is removed before any error propagates.

        Returns:
            Number of bytes written

        Raises:
            InvalidAttachmentError: The upload is larger than ``max_bytes``
            StorageError: The filesystem write failed
        """
        path = self.path_for(file_name)
        written = 0
        try:
            await asyncio.to_thread(self._base_dir.mkdir, parents=True, exist_ok=True)
            out = await asyncio.to_thread(open, path, "wb")
            try:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_bytes:
                        raise InvalidAttachmentError(
                            f"File exceeds the {max_bytes} byte limit",
                            field="file",
                            constraint=f"max_bytes={max_bytes}",
                        )
                    await asyncio.to_thread(out.write, chunk)
            finally:
                await asyncio.to_thread(out.close)
        except InvalidAttachmentError:
            await self.delete_if_exists(file_name)
            raise
        except OSError as e:
            await self.delete_if_exists(file_name)
            logger.error(f"Failed to write blob {path}: {e}")
            raise StorageError("Failed to store file", path=str(path), original_error=e)

        return written

    async def delete_if_exists(self, file_name: str) -> bool:
        """
        Remove a blob. A missing file is not an error.

        Returns:
            True if a file was removed

        Raises:
            StorageError: The file exists but could not be removed
        """
        path = self.path_for(file_name)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError("Failed to delete file", path=str(path), original_error=e)
        return True


_file_storage_instance: Optional[FileStorage] = None


def get_file_storage() -> FileStorage:
    """Get or create the blob store for the configured upload directory."""
    global _file_storage_instance

    if _file_storage_instance is None:
        _file_storage_instance = FileStorage(get_settings().upload_dir)

    return _file_storage_instance
