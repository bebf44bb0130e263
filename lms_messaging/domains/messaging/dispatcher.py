# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fan-out of new-message notifications.

Called only after the message is committed. For each participant other
than the sender, the preference collaborator is consulted for the
"message" category and a delivery job is enqueued for the permitted ones.
Delivery itself happens in a background worker.

Nothing raised here reaches the caller: lookup and enqueue failures are
logged and dropped, so a broken notification path never fails a send.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass
from typing import Any

from lms_messaging.infrastructure.notifications.preferences import (
    MESSAGE_CATEGORY,
    NotificationPreferences,
)
from lms_messaging.models.messaging import MessageResponse

logger = logging.getLogger(__name__)

NEW_MESSAGE_TITLE = "New Message"

Enqueue = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class MessageNotification:
    """Notification job payload for one recipient.

    Attributes:
        recipient_id: User to notify.
        title: Notification title.
        body: Notification text.
        related_message_id: Message that triggered the notification.
        conversation_id: Conversation of the message.
        sender_id: Sender of the message.
    """

    recipient_id: int
    title: str
    body: str
    related_message_id: int
    conversation_id: int
    sender_id: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable job payload."""
        return asdict(self)


def build_message_notification(recipient_id: int, message: MessageResponse) -> MessageNotification:
    """Build the notification a recipient gets for a new message."""
    sender_name = message.sender_name or "another user"
    return MessageNotification(
        recipient_id=recipient_id,
        title=NEW_MESSAGE_TITLE,
        body=f"You have received a new message from {sender_name}.",
        related_message_id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
    )


def enqueue_delivery_job(payload: dict[str, Any]) -> None:
    """Send a payload to the notification delivery actor."""
    from lms_messaging.infrastructure.background.tasks.notifications import (
        deliver_message_notification,
    )

    deliver_message_notification.send(payload)


class NotificationDispatcher:
    """Enqueues notification jobs for the other participants of a message.

    Attributes:
        preferences: Opt-in lookup; None allows everyone.
        enabled: When False, dispatch is a no-op.
    """

    def __init__(
        self,
        preferences: NotificationPreferences | None = None,
        enqueue: Enqueue | None = None,
        enabled: bool = True,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            preferences: Opt-in lookup.
            enqueue: Callable that queues one job payload. Defaults to the
                Dramatiq delivery actor.
            enabled: Whether to dispatch at all.
        """
        self.preferences = preferences
        self.enabled = enabled
        self._enqueue = enqueue or enqueue_delivery_job

    async def dispatch(self, message: MessageResponse, participant_ids: Iterable[int]) -> int:
        """Enqueue notifications for a committed message.

        Args:
            message: The committed message.
            participant_ids: All participants of the conversation.

        Returns:
            Number of jobs enqueued.
        """
        if not self.enabled:
            return 0

        recipients = [
            user_id
            for user_id in dict.fromkeys(participant_ids)
            if user_id != message.sender_id
        ]
        if not recipients:
            return 0

        allowed = set(recipients)
        if self.preferences is not None:
            try:
                allowed = await self.preferences.allowed(recipients, MESSAGE_CATEGORY)
            except Exception as e:
                logger.warning(
                    "Preference lookup failed for message %s, notifying all recipients: %s",
                    message.id,
                    str(e),
                )

        enqueued = 0
        for recipient_id in recipients:
            if recipient_id not in allowed:
                logger.debug(
                    "User %s opted out of message notifications, skipping message %s",
                    recipient_id,
                    message.id,
                )
                continue

            try:
                self._enqueue(build_message_notification(recipient_id, message).to_dict())
                enqueued += 1
            except Exception as e:
                logger.error(
                    "Failed to enqueue notification for user %s (message %s): %s",
                    recipient_id,
                    message.id,
                    str(e),
                    exc_info=True,
                )

        logger.info(
            "Enqueued %d of %d notifications for message %s",
            enqueued,
            len(recipients),
            message.id,
        )
        return enqueued
