"""
Attachment Serving Route

Files are addressed by their generated name, which acts as the
capability; no session is required.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from mechanic_chat.api.dependencies import get_attachment_service
from mechanic_chat.infrastructure.services.attachment_service import AttachmentService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/attachments/{file_name}")
async def serve_attachment(
    file_name: str,
    service: AttachmentService = Depends(get_attachment_service),
):
    """Stream a stored file. Expired files return 404 and are deleted."""
    attachment, path = await service.serve(file_name)
    return FileResponse(
        path,
        media_type=attachment.mime_type,
        filename=attachment.original_name,
        content_disposition_type="inline",
    )
