# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification service for delivering queued message notifications.

Runs inside the background worker. For each job payload it:
1. Skips delivery if the recipient already has a notification for the
   same message (jobs are delivered at least once)
2. Re-checks the recipient's preference, which may have changed since
   the job was enqueued
3. Creates the notification through the in-app channel

A failed channel send raises NotificationDeliveryError so the job is
retried by the worker.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.infrastructure.database.models.notification import Notification
from lms_messaging.infrastructure.notifications.channels import (
    ChannelResult,
    DeliveryStatus,
    InAppChannel,
    NotificationPayload,
)
from lms_messaging.infrastructure.notifications.preferences import (
    MESSAGE_CATEGORY,
    NotificationPreferences,
)

logger = logging.getLogger(__name__)


class NotificationDeliveryError(Exception):
    """A notification could not be delivered and should be retried."""

    def __init__(self, message: str, result: ChannelResult | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.result = result


class NotificationService:
    """Delivers notifications to users through the in-app channel.

    Attributes:
        db: Async database session. The caller commits.
        preferences: Opt-in lookup.
        channel: In-app channel bound to the same session.
    """

    def __init__(
        self,
        db: AsyncSession,
        preferences: NotificationPreferences | None = None,
        channel: InAppChannel | None = None,
    ) -> None:
        """Initialize the notification service.

        Args:
            db: Async database session.
            preferences: Opt-in lookup; defaults to one on the same session.
            channel: In-app channel; defaults to a new one.
        """
        self.db = db
        self.preferences = preferences or NotificationPreferences(db)
        self.channel = channel or InAppChannel()
        self.channel.set_session(db)

    async def deliver_message_notification(self, job: dict[str, Any]) -> ChannelResult:
        """Deliver one new-message notification job.

        Args:
            job: Payload built by the dispatcher, with recipient_id, title,
                body, related_message_id, conversation_id and sender_id.

        Returns:
            Channel result; SKIPPED for duplicates and opted-out users.

        Raises:
            NotificationDeliveryError: If the channel failed to deliver.
        """
        recipient_id = int(job["recipient_id"])
        message_id = int(job["related_message_id"])

        if await self._already_delivered(recipient_id, MESSAGE_CATEGORY, message_id):
            logger.debug(
                "Notification for message %s already delivered to user %s",
                message_id,
                recipient_id,
            )
            return self.channel.create_skipped_result("already delivered")

        if not await self._channel_enabled(recipient_id, MESSAGE_CATEGORY):
            logger.debug("User %s has message notifications disabled", recipient_id)
            return self.channel.create_skipped_result("disabled by preference")

        payload = NotificationPayload(
            notification_type=MESSAGE_CATEGORY,
            title=job["title"],
            message=job["body"],
            recipient_id=recipient_id,
            related_id=message_id,
            data={
                "conversation_id": job.get("conversation_id"),
                "sender_id": job.get("sender_id"),
            },
        )
        result = await self.channel.send(payload)

        if result.status is DeliveryStatus.FAILED:
            raise NotificationDeliveryError(
                f"In-app delivery failed for user {recipient_id}: {result.error_message}",
                result=result,
            )
        return result

    async def _already_delivered(self, user_id: int, category: str, related_id: int) -> bool:
        """Check whether a notification for the entity already exists."""
        result = await self.db.execute(
            select(Notification.id)
            .where(
                Notification.user_id == user_id,
                Notification.notification_type == category,
                Notification.related_id == related_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _channel_enabled(self, user_id: int, category: str) -> bool:
        """Recheck the recipient's preference at delivery time."""
        return await self.preferences.allows(user_id, category)
