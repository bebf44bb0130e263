# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attachment storage."""

from lms_messaging.infrastructure.storage.attachments import LocalAttachmentStore

__all__ = ["LocalAttachmentStore"]
