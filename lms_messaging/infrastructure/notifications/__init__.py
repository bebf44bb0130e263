# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification system for the LMS messaging service.

Key Components:
- NotificationPreferences: Per-user, per-category opt-in lookup
- NotificationService: Delivers queued notification jobs
- Channels: InAppChannel
- NotificationPayload: Data structure for notification content

Usage:
    from lms_messaging.infrastructure.notifications import NotificationService

    async with get_session() as session:
        service = NotificationService(session)
        result = await service.deliver_message_notification(job)
"""

from lms_messaging.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    InAppChannel,
    NotificationPayload,
)
from lms_messaging.infrastructure.notifications.preferences import (
    MESSAGE_CATEGORY,
    NotificationPreferences,
)
from lms_messaging.infrastructure.notifications.service import (
    NotificationDeliveryError,
    NotificationService,
)

__all__ = [
    # Service
    "NotificationService",
    "NotificationDeliveryError",
    "NotificationPreferences",
    "MESSAGE_CATEGORY",
    # Channel types
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "NotificationPayload",
    # Channels
    "InAppChannel",
]
