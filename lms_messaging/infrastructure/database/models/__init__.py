# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models for the LMS messaging database."""

from lms_messaging.infrastructure.database.models.base import Base, TimestampMixin
from lms_messaging.infrastructure.database.models.messaging import (
    Conversation,
    ConversationKind,
    ConversationParticipant,
    Message,
    make_direct_key,
)
from lms_messaging.infrastructure.database.models.notification import (
    Notification,
    NotificationPreference,
)
from lms_messaging.infrastructure.database.models.user import User, UserSettings

__all__ = [
    "Base",
    "TimestampMixin",
    # Users
    "User",
    "UserSettings",
    # Messaging
    "Conversation",
    "ConversationKind",
    "ConversationParticipant",
    "Message",
    "make_direct_key",
    # Notifications
    "Notification",
    "NotificationPreference",
]
