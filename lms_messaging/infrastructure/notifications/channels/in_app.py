# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-app notification channel.

Creates rows in the notifications table, which the LMS shows in its
notification center.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.infrastructure.database.models.notification import Notification
from lms_messaging.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    NotificationPayload,
)


class InAppChannel(BaseChannel):
    """In-app notification channel.

    This channel requires a database session to be set before
    sending notifications via set_session(). It flushes but never
    commits; the caller owns the transaction.
    """

    def __init__(self) -> None:
        """Initialize the in-app channel."""
        super().__init__()
        self._session: AsyncSession | None = None

    @property
    def channel_type(self) -> ChannelType:
        """Return the channel type."""
        return ChannelType.IN_APP

    def set_session(self, session: AsyncSession) -> None:
        """Set the database session for this channel.

        Args:
            session: Async database session.
        """
        self._session = session

    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Create an in-app notification record.

        Args:
            payload: The notification payload.

        Returns:
            ChannelResult with delivery status.
        """
        if self._session is None:
            return self.create_failure_result(
                "Database session not set. Call set_session() first."
            )

        try:
            notification = Notification(
                user_id=payload.recipient_id,
                notification_type=payload.notification_type,
                title=payload.title,
                message=payload.message,
                related_id=payload.related_id,
                data=dict(payload.data),
                is_read=False,
            )
            self._session.add(notification)
            await self._session.flush()

            self.logger.info(
                "Created in-app notification %s for user %s",
                notification.id,
                payload.recipient_id,
            )
            return self.create_success_result(
                message_id=str(notification.id),
                metadata={"notification_id": notification.id},
            )

        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to create in-app notification for user %s: %s",
                payload.recipient_id,
                str(e),
                exc_info=True,
            )
            return self.create_failure_result(f"Database error: {str(e)}")
