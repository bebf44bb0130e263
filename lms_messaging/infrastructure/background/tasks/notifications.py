# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification delivery background tasks.

Jobs are enqueued by the messaging dispatcher after a message commits.
Delivery is at least once: a failed job is retried, and the notification
service skips recipients that already have the notification.
"""

from typing import Any

import dramatiq

from lms_messaging.core.config import get_settings
from lms_messaging.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from lms_messaging.infrastructure.background.tasks.base import run_async, worker_session
from lms_messaging.utils.logging import get_logger

# Setup broker before defining actors
setup_dramatiq()

logger = get_logger(__name__)

_worker = get_settings().worker


@dramatiq.actor(
    queue_name=Queues.NOTIFICATIONS,
    max_retries=_worker.notification_max_retries,
    min_backoff=1000,  # 1 second
    time_limit=_worker.notification_time_limit_ms,
    priority=Priority.HIGH,
)
def deliver_message_notification(payload: dict[str, Any]) -> dict[str, Any]:
    """Create the in-app notification for one new-message job.

    Args:
        payload: Job built by the dispatcher (recipient_id, title, body,
            related_message_id, conversation_id, sender_id).

    Returns:
        Channel result as a dictionary.
    """

    async def _deliver() -> dict[str, Any]:
        from lms_messaging.infrastructure.notifications.service import NotificationService

        async with worker_session() as session:
            result = await NotificationService(session).deliver_message_notification(payload)

        logger.info(
            "message_notification_processed",
            recipient_id=payload.get("recipient_id"),
            message_id=payload.get("related_message_id"),
            status=result.status.value,
        )
        return result.to_dict()

    return run_async(_deliver())
