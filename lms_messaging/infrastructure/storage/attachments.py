# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Local filesystem storage for message attachments.

Uploads are written under the configured directory as
message-<unix ms>-<random><ext> and served under the configured URL
prefix. The messaging core only ever sees the resulting URL and content
type.
"""

import logging
import secrets
import time
from pathlib import Path, PurePath

from lms_messaging.core.config.settings import AttachmentSettings
from lms_messaging.domains.messaging.errors import ValidationError
from lms_messaging.models.messaging import AttachmentUploadResponse

logger = logging.getLogger(__name__)


class LocalAttachmentStore:
    """Writes uploaded attachments to local disk.

    Attributes:
        directory: Target directory, created on first save.
        url_prefix: Public URL prefix for stored files.
        max_bytes: Maximum accepted size.
    """

    def __init__(self, settings: AttachmentSettings | None = None) -> None:
        settings = settings or AttachmentSettings()
        self.directory = Path(settings.directory)
        self.url_prefix = settings.url_prefix.rstrip("/")
        self.max_bytes = settings.max_bytes

    def make_filename(self, original_name: str | None) -> str:
        """Build a unique stored name that keeps the original extension."""
        suffix = PurePath(original_name or "").suffix.lower()
        return f"message-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"

    def save(
        self,
        data: bytes,
        original_name: str | None,
        content_type: str | None = None,
    ) -> AttachmentUploadResponse:
        """Store an upload and return its public reference.

        Args:
            data: File contents.
            original_name: Client-supplied file name.
            content_type: Client-supplied MIME type.

        Returns:
            URL, content type, original name and size of the stored file.

        Raises:
            ValidationError: If the upload is empty or too large.
        """
        if not data:
            raise ValidationError("No file uploaded")
        if len(data) > self.max_bytes:
            raise ValidationError(f"File exceeds the {self.max_bytes} byte limit")

        self.directory.mkdir(parents=True, exist_ok=True)
        filename = self.make_filename(original_name)
        (self.directory / filename).write_bytes(data)

        logger.info("Stored attachment %s (%d bytes)", filename, len(data))
        return AttachmentUploadResponse(
            url=f"{self.url_prefix}/{filename}",
            content_type=content_type,
            file_name=original_name or filename,
            size=len(data),
        )
