# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversation and message delivery domain.

Components, leaves first:
- MessageStore: ordered, append-only message log per conversation
- ReadCursorTracker: per-participant read watermark
- ReceiptCalculator: unread counts and read receipts
- ConversationResolver: creation and direct-conversation dedup
- NotificationDispatcher: fan-out of new-message notifications
- MessagingService: the operations exposed to callers
"""

from lms_messaging.domains.messaging.dispatcher import (
    MessageNotification,
    NotificationDispatcher,
    build_message_notification,
)
from lms_messaging.domains.messaging.errors import (
    AuthorizationError,
    ConflictError,
    MessagingError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from lms_messaging.domains.messaging.read_cursor import ReadCursorTracker
from lms_messaging.domains.messaging.receipts import Receipt, ReceiptCalculator, compute_receipt
from lms_messaging.domains.messaging.repository import ConversationRepository
from lms_messaging.domains.messaging.resolver import ConversationResolver, Resolution
from lms_messaging.domains.messaging.service import MessagingService
from lms_messaging.domains.messaging.store import MessageStore

__all__ = [
    # Service
    "MessagingService",
    # Components
    "ConversationRepository",
    "ConversationResolver",
    "Resolution",
    "MessageStore",
    "ReadCursorTracker",
    "ReceiptCalculator",
    "Receipt",
    "compute_receipt",
    "NotificationDispatcher",
    "MessageNotification",
    "build_message_notification",
    # Errors
    "MessagingError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "TransientStoreError",
]
