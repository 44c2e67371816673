"""Disk-backed attachment blob storage

Attachments are uploaded in two phases:
1. `attachments.create` returns metadata carrying an `upload_url`
2. The client POSTs the bytes to that URL, served by server.app

Blobs live as flat files named after the attachment id.
"""

import logging
from pathlib import Path
from typing import Any

from threads import Attachment, FileAttachment, ImageAttachment, StoreItemType

from .base import AttachmentCreateParams, AttachmentStore, NotFoundError, unique_generate_id

logger = logging.getLogger(__name__)


class DiskAttachmentStore(AttachmentStore[Any]):
    """Stores attachment bytes under `base_dir`."""

    def __init__(self, base_dir: str | Path = "./attachments", base_url: str = "http://localhost:8000"):
        self.base_dir = Path(base_dir)
        self.base_url = base_url.rstrip("/")
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, attachment_id: str) -> Path:
        # Ids are used verbatim as file names
        if not attachment_id or Path(attachment_id).name != attachment_id or attachment_id in (".", ".."):
            raise NotFoundError(f"Attachment {attachment_id} not found")
        return self.base_dir / attachment_id

    def generate_attachment_id(self, mime_type: str, context: Any) -> str:
        # Blob files outlive the process
        return unique_generate_id(StoreItemType.ATTACHMENT)

    def upload_url(self, attachment_id: str) -> str:
        return f"{self.base_url}/api/chatkit/attachments/{attachment_id}/upload"

    def file_url(self, attachment_id: str) -> str:
        return f"{self.base_url}/api/chatkit/attachments/{attachment_id}/file"

    async def create_attachment(self, params: AttachmentCreateParams, context: Any) -> Attachment:
        attachment_id = self.generate_attachment_id(params.mime_type, context)
        if params.mime_type.startswith("image/"):
            return ImageAttachment(
                id=attachment_id,
                name=params.name,
                mime_type=params.mime_type,
                upload_url=self.upload_url(attachment_id),
                preview_url=self.file_url(attachment_id),
            )
        return FileAttachment(
            id=attachment_id,
            name=params.name,
            mime_type=params.mime_type,
            upload_url=self.upload_url(attachment_id),
        )

    async def store_file_data(self, attachment_id: str, data: bytes) -> None:
        """Write the uploaded bytes for an attachment."""
        self._path(attachment_id).write_bytes(data)
        logger.debug("Stored %d bytes for attachment %s", len(data), attachment_id)

    async def get_file_data(self, attachment_id: str) -> bytes:
        """Read the bytes of an uploaded attachment.

        Raises:
            NotFoundError: If nothing was uploaded for this id
        """
        path = self._path(attachment_id)
        if not path.is_file():
            raise NotFoundError(f"Attachment {attachment_id} has no uploaded data")
        return path.read_bytes()

    async def delete_attachment(self, attachment_id: str, context: Any) -> None:
        self._path(attachment_id).unlink(missing_ok=True)
