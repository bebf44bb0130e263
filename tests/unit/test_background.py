# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the Dramatiq broker and notification actor.

DRAMATIQ_TEST_MODE is set in conftest, so the broker is a StubBroker and
nothing here needs Redis.
"""

from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from dramatiq.brokers.stub import StubBroker

from lms_messaging.domains.messaging.dispatcher import enqueue_delivery_job
from lms_messaging.infrastructure.background import (
    Queues,
    get_broker,
    get_broker_manager,
    setup_dramatiq,
)
from lms_messaging.infrastructure.background.tasks import deliver_message_notification
from lms_messaging.infrastructure.notifications import InAppChannel, NotificationDeliveryError

JOB = {
    "recipient_id": 2,
    "title": "New Message",
    "body": "You have received a new message from Ada Lovelace.",
    "related_message_id": 100,
    "conversation_id": 10,
    "sender_id": 1,
}


@asynccontextmanager
async def fake_worker_session():
    yield MagicMock()


def run_in_worker_thread(fn, *args):
    """Run an actor body on its own thread, as a Dramatiq worker would."""
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(fn, *args).result()


class TestBroker:
    """Tests for broker setup."""

    def test_stub_broker_in_test_mode(self) -> None:
        """Test the stub broker is used when DRAMATIQ_TEST_MODE is set."""
        broker = setup_dramatiq()

        assert isinstance(broker, StubBroker)
        assert get_broker() is broker

    def test_setup_is_idempotent(self) -> None:
        """Test repeated setup returns the same broker."""
        assert setup_dramatiq() is setup_dramatiq()

    def test_queue_stats_for_stub(self) -> None:
        """Test stats report the stub broker as healthy."""
        setup_dramatiq()

        assert get_broker_manager().get_queue_stats() == {"broker_type": "stub", "status": "healthy"}

    def test_actor_declared_on_notifications_queue(self) -> None:
        """Test the delivery actor routes to the notifications queue."""
        assert deliver_message_notification.queue_name == Queues.NOTIFICATIONS
        assert Queues.NOTIFICATIONS in get_broker().get_declared_queues()


class TestEnqueue:
    """Tests for enqueueing delivery jobs."""

    def test_enqueue_puts_job_on_queue(self) -> None:
        """Test the dispatcher's default enqueue reaches the broker."""
        broker = get_broker()
        broker.flush_all()

        enqueue_delivery_job(JOB)

        assert broker.queues[Queues.NOTIFICATIONS].qsize() == 1
        broker.flush_all()


class TestDeliverActor:
    """Tests for the actor body."""

    def test_actor_delivers_through_service(self) -> None:
        """Test the actor runs the notification service and returns its result."""
        result = InAppChannel().create_success_result(message_id="9")
        service = MagicMock()
        service.deliver_message_notification = AsyncMock(return_value=result)

        with patch(
            "lms_messaging.infrastructure.background.tasks.notifications.worker_session",
            fake_worker_session,
        ), patch(
            "lms_messaging.infrastructure.notifications.service.NotificationService",
            return_value=service,
        ):
            output = run_in_worker_thread(deliver_message_notification.fn, JOB)

        service.deliver_message_notification.assert_awaited_once_with(JOB)
        assert output["status"] == "sent"
        assert output["message_id"] == "9"
        assert output["channel"] == "in_app"

    def test_delivery_error_propagates_for_retry(self) -> None:
        """Test a delivery failure escapes the actor so Dramatiq retries it."""
        service = MagicMock()
        service.deliver_message_notification = AsyncMock(
            side_effect=NotificationDeliveryError("In-app delivery failed for user 2")
        )

        with patch(
            "lms_messaging.infrastructure.background.tasks.notifications.worker_session",
            fake_worker_session,
        ), patch(
            "lms_messaging.infrastructure.notifications.service.NotificationService",
            return_value=service,
        ):
            with pytest.raises(NotificationDeliveryError):
                run_in_worker_thread(deliver_message_notification.fn, JOB)
