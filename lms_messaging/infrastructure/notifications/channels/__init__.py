# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification channels for delivering notifications.

- InAppChannel: Creates notification records in the database

Usage:
    from lms_messaging.infrastructure.notifications.channels import (
        InAppChannel,
        NotificationPayload,
    )

    channel = InAppChannel()
    channel.set_session(session)
    result = await channel.send(
        NotificationPayload(
            notification_type="message",
            title="New Message",
            message="You have received a new message from Ada.",
            recipient_id=42,
            related_id=1001,
        )
    )
"""

from lms_messaging.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    NotificationPayload,
)
from lms_messaging.infrastructure.notifications.channels.in_app import InAppChannel

__all__ = [
    # Base types
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "NotificationPayload",
    # Channels
    "InAppChannel",
]
