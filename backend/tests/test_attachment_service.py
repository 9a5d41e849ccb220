"""
Tests for AttachmentService: upload limits, compensation on failure,
serve-time expiry and the sweep.

Most tests shrink the size ceilings; TestDefaultLimits streams zeros at
the configured ones.
"""

from datetime import timedelta
from io import BytesIO
from unittest.mock import patch

import pytest
from sqlalchemy import select
from starlette.datastructures import Headers

from fastapi import UploadFile

from mechanic_chat.config.settings import Settings
from mechanic_chat.infrastructure.db.models import AuthSession, utcnow
from mechanic_chat.infrastructure.db.repositories.attachment_repository import (
    AttachmentRepository,
)
from mechanic_chat.infrastructure.db.repositories.user_repository import AuthSessionRepository
from mechanic_chat.infrastructure.exceptions import (
    InvalidAttachmentError,
    NotFoundError,
    StorageError,
)
from mechanic_chat.infrastructure.services.attachment_service import (
    AttachmentService,
    SweepResult,
)
from mechanic_chat.infrastructure.services.attachment_sweeper import run_sweep_once
from mechanic_chat.infrastructure.services.chat_service import ChatService


IMAGE_LIMIT = 1024
VIDEO_LIMIT = 4096


def make_upload(size: int, content_type: str = "image/jpeg", filename: str = "photo.jpg"):
    return UploadFile(
        file=BytesIO(b"\x01" * size),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def blobs(storage):
    return sorted(p.name for p in storage.base_dir.glob("*"))


@pytest.fixture
def chats(db_session):
    return ChatService(db_session)


@pytest.fixture
def service(db_session, storage, chats):
    svc = AttachmentService(db_session, storage=storage, chat_service=chats)
    svc._settings = Settings(
        _env_file=None,
        max_image_bytes=IMAGE_LIMIT,
        max_video_bytes=VIDEO_LIMIT,
    )
    return svc


@pytest.fixture
async def chat(chats, subscriber):
    return await chats.create_session(subscriber, {"type": "car"})


class TestUpload:

    @pytest.mark.asyncio
    async def test_image_at_limit_accepted(self, service, storage, subscriber, chat):
        view = await service.upload(subscriber, chat.id, make_upload(IMAGE_LIMIT))

        assert view.content == "[File: photo.jpg]"
        [attachment] = view.attachments
        assert attachment.file_size == IMAGE_LIMIT
        assert attachment.mime_type == "image/jpeg"
        assert attachment.original_name == "photo.jpg"
        assert attachment.url == f"/api/attachments/{attachment.file_name}"
        assert attachment.expires_at - attachment.uploaded_at == timedelta(days=30)
        assert blobs(storage) == [attachment.file_name]

    @pytest.mark.asyncio
    async def test_image_over_limit_leaves_nothing(self, service, storage, chats, subscriber, chat):
        with pytest.raises(InvalidAttachmentError):
            await service.upload(subscriber, chat.id, make_upload(IMAGE_LIMIT + 1))

        assert blobs(storage) == []
        assert await chats.get_session_messages(subscriber, chat.id) == []

    @pytest.mark.asyncio
    async def test_video_uses_video_limit(self, service, subscriber, chat):
        upload = make_upload(VIDEO_LIMIT, "video/mp4", "noise.mp4")
        view = await service.upload(subscriber, chat.id, upload)
        assert view.attachments[0].file_size == VIDEO_LIMIT

    @pytest.mark.asyncio
    async def test_video_over_limit(self, service, storage, subscriber, chat):
        with pytest.raises(InvalidAttachmentError):
            await service.upload(
                subscriber, chat.id, make_upload(VIDEO_LIMIT + 1, "video/mp4", "noise.mp4")
            )
        assert blobs(storage) == []

    @pytest.mark.asyncio
    async def test_disallowed_type(self, service, storage, chats, subscriber, chat):
        with pytest.raises(InvalidAttachmentError):
            await service.upload(
                subscriber, chat.id, make_upload(10, "application/pdf", "manual.pdf")
            )
        assert blobs(storage) == []
        assert await chats.get_session_messages(subscriber, chat.id) == []

    @pytest.mark.asyncio
    async def test_foreign_session(self, service, storage, create_user, chat):
        stranger = await create_user("mallory")
        with pytest.raises(NotFoundError):
            await service.upload(stranger, chat.id, make_upload(10))
        assert blobs(storage) == []

    @pytest.mark.asyncio
    async def test_row_failure_compensates(self, service, storage, chats, subscriber, chat):
        with patch.object(AttachmentRepository, "create", side_effect=RuntimeError("db down")):
            with pytest.raises(RuntimeError):
                await service.upload(subscriber, chat.id, make_upload(10))

        assert blobs(storage) == []
        assert await chats.get_session_messages(subscriber, chat.id) == []

    @pytest.mark.asyncio
    async def test_client_path_stripped(self, service, storage, subscriber, chat):
        view = await service.upload(
            subscriber, chat.id, make_upload(10, filename="../../etc/evil.png")
        )
        assert view.attachments[0].original_name == "evil.png"
        assert ".." not in view.attachments[0].file_name


class TestServeAndExpiry:

    @pytest.mark.asyncio
    async def test_serve_live_file(self, service, subscriber, chat):
        view = await service.upload(subscriber, chat.id, make_upload(10))
        name = view.attachments[0].file_name

        attachment, path = await service.serve(name)
        assert attachment.file_name == name
        assert path.read_bytes() == b"\x01" * 10

    @pytest.mark.asyncio
    async def test_unknown_file(self, service):
        with pytest.raises(NotFoundError):
            await service.serve("does-not-exist.jpg")

    @pytest.mark.asyncio
    async def test_expired_file_deleted_on_access(self, service, storage, subscriber, chat):
        now = utcnow()
        view = await service.upload(subscriber, chat.id, make_upload(10), now)
        name = view.attachments[0].file_name
        later = now + timedelta(days=31)

        with pytest.raises(NotFoundError):
            await service.serve(name, later)
        with pytest.raises(NotFoundError):
            await service.serve(name, later)

        assert blobs(storage) == []
        result = await service.sweep_expired(later)
        assert result.scanned == 0
        assert result.failed == 0

    @pytest.mark.asyncio
    async def test_sweep_then_serve(self, service, storage, subscriber, chat):
        now = utcnow()
        view = await service.upload(subscriber, chat.id, make_upload(10), now)
        name = view.attachments[0].file_name
        later = now + timedelta(days=31)

        result = await service.sweep_expired(later)
        assert (result.scanned, result.deleted, result.failed) == (1, 1, 0)
        with pytest.raises(NotFoundError):
            await service.serve(name, later)

    @pytest.mark.asyncio
    async def test_sweep_skips_live_files(self, service, storage, subscriber, chat):
        now = utcnow()
        await service.upload(subscriber, chat.id, make_upload(10), now)

        result = await service.sweep_expired(now + timedelta(days=29))
        assert result.scanned == 0
        assert len(blobs(storage)) == 1

    @pytest.mark.asyncio
    async def test_sweep_tolerates_missing_blob(self, service, storage, subscriber, chat):
        now = utcnow()
        view = await service.upload(subscriber, chat.id, make_upload(10), now)
        (storage.base_dir / view.attachments[0].file_name).unlink()

        result = await service.sweep_expired(now + timedelta(days=31))
        assert (result.scanned, result.deleted, result.failed) == (1, 1, 0)

    @pytest.mark.asyncio
    async def test_expired_file_stuck_on_disk_still_not_found(
        self, service, storage, subscriber, chat
    ):
        now = utcnow()
        view = await service.upload(subscriber, chat.id, make_upload(10), now)
        name = view.attachments[0].file_name

        failure = StorageError("Failed to delete file", path=name)
        with patch.object(storage, "delete_if_exists", side_effect=failure):
            with pytest.raises(NotFoundError):
                await service.serve(name, now + timedelta(days=31))

        # Left for the next sweep
        assert blobs(storage) == [name]
        result = await service.sweep_expired(now + timedelta(days=31))
        assert result == SweepResult(scanned=1, deleted=1, failed=0)

    @pytest.mark.asyncio
    async def test_placeholder_message_survives_expiry(self, service, chats, subscriber, chat):
        now = utcnow()
        await service.upload(subscriber, chat.id, make_upload(10), now)
        await service.sweep_expired(now + timedelta(days=31))

        [message] = await chats.get_session_messages(subscriber, chat.id)
        assert message.content == "[File: photo.jpg]"
        assert message.attachments == []


class TestSweepFailures:

    async def _upload_many(self, service, subscriber, chat, count, now):
        names = []
        for i in range(count):
            view = await service.upload(
                subscriber, chat.id, make_upload(10, filename=f"part{i}.jpg"), now
            )
            names.append(view.attachments[0].file_name)
        return names

    def _failing_for(self, storage, stuck_name):
        original = storage.delete_if_exists

        async def delete_if_exists(file_name):
            if file_name == stuck_name:
                raise StorageError("Failed to delete file", path=file_name)
            return await original(file_name)

        return patch.object(storage, "delete_if_exists", side_effect=delete_if_exists)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_rest(
        self, service, storage, db_session, subscriber, chat
    ):
        now = utcnow()
        names = await self._upload_many(service, subscriber, chat, 3, now)
        await db_session.commit()
        stuck = names[1]

        with self._failing_for(storage, stuck):
            result = await service.sweep_expired(now + timedelta(days=31))

        assert result == SweepResult(scanned=3, deleted=2, failed=1)
        assert blobs(storage) == [stuck]

    @pytest.mark.asyncio
    async def test_backlog_cleared_across_batches(
        self, service, storage, db_session, subscriber, chat
    ):
        now = utcnow()
        await self._upload_many(service, subscriber, chat, 5, now)
        await db_session.commit()

        result = await service.sweep_expired(now + timedelta(days=31), batch_size=2)

        assert result == SweepResult(scanned=5, deleted=5, failed=0)
        assert blobs(storage) == []

    @pytest.mark.asyncio
    async def test_failing_oldest_does_not_block_later_batches(
        self, service, storage, db_session, subscriber, chat
    ):
        now = utcnow()
        [stuck] = await self._upload_many(
            service, subscriber, chat, 1, now - timedelta(days=1)
        )
        await self._upload_many(service, subscriber, chat, 4, now)
        await db_session.commit()

        with self._failing_for(storage, stuck):
            result = await service.sweep_expired(now + timedelta(days=31), batch_size=2)

        assert result == SweepResult(scanned=5, deleted=4, failed=1)
        assert blobs(storage) == [stuck]


class TestSweeper:

    @pytest.mark.asyncio
    async def test_run_sweep_once(self, service, db_session, storage, subscriber, chat):
        now = utcnow()
        await service.upload(subscriber, chat.id, make_upload(10), now)
        await db_session.commit()

        result = await run_sweep_once(now + timedelta(days=31))

        assert result.deleted == 1
        assert blobs(storage) == []

    @pytest.mark.asyncio
    async def test_run_sweep_once_purges_expired_auth_sessions(self, db_session, subscriber):
        tokens = AuthSessionRepository(db_session)
        now = utcnow()
        await tokens.create("stale-token", subscriber.id, False, now - timedelta(hours=1))
        await tokens.create("live-token", subscriber.id, False, now + timedelta(hours=1))
        await db_session.commit()

        await run_sweep_once(now)

        remaining = await db_session.execute(select(AuthSession.token))
        assert remaining.scalars().all() == ["live-token"]


class ZeroStream:
    """File-like source of ``size`` zero bytes without holding them in memory."""

    def __init__(self, size: int):
        self._remaining = size

    def read(self, n: int = -1) -> bytes:
        if n < 0 or n > self._remaining:
            n = self._remaining
        self._remaining -= n
        return b"\x00" * n

    def close(self):
        pass


class TestDefaultLimits:
    """Boundaries at the configured 30 MiB / 150 MiB ceilings."""

    def _upload(self, size, content_type, filename):
        return UploadFile(
            file=ZeroStream(size),
            filename=filename,
            headers=Headers({"content-type": content_type}),
        )

    @pytest.fixture
    def default_service(self, db_session, storage, chats):
        svc = AttachmentService(db_session, storage=storage, chat_service=chats)
        svc._settings = Settings(_env_file=None)
        return svc

    @pytest.mark.asyncio
    async def test_thirty_mib_image(self, default_service, storage, chats, subscriber, chat):
        limit = 30 * 1024 * 1024

        view = await default_service.upload(
            subscriber, chat.id, self._upload(limit, "image/png", "big.png")
        )
        assert view.attachments[0].file_size == limit

        with pytest.raises(InvalidAttachmentError):
            await default_service.upload(
                subscriber, chat.id, self._upload(limit + 1, "image/png", "bigger.png")
            )
        assert blobs(storage) == [view.attachments[0].file_name]
        assert len(await chats.get_session_messages(subscriber, chat.id)) == 1

    @pytest.mark.asyncio
    async def test_hundred_fifty_mib_video(self, default_service, subscriber, chat):
        limit = 150 * 1024 * 1024
        view = await default_service.upload(
            subscriber, chat.id, self._upload(limit, "video/mp4", "drive.mp4")
        )
        assert view.attachments[0].file_size == limit
