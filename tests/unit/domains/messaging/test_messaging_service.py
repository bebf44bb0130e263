# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the messaging service operations."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from lms_messaging.domains.messaging import (
    ConflictError,
    MessagingService,
    NotificationDispatcher,
    TransientStoreError,
    ValidationError,
)
from lms_messaging.infrastructure.database.models import NotificationPreference, UserSettings


class TestListConversations:
    """Tests for the caller's conversation list."""

    @pytest.mark.asyncio
    async def test_most_recent_activity_first(self, messaging_service: MessagingService, users) -> None:
        """Test a conversation with a newer message moves to the top."""
        with_ben = await messaging_service.create_conversation(users.ada, [users.ben])
        with_cai = await messaging_service.create_conversation(users.ada, [users.cai])

        listing = await messaging_service.list_conversations_for_user(users.ada)
        assert [c.id for c in listing.items] == [with_cai.conversation_id, with_ben.conversation_id]

        await messaging_service.send_message(with_ben.conversation_id, users.ben, "bump")

        listing = await messaging_service.list_conversations_for_user(users.ada)
        assert [c.id for c in listing.items] == [with_ben.conversation_id, with_cai.conversation_id]
        assert listing.total == 2

    @pytest.mark.asyncio
    async def test_direct_summary(self, messaging_service: MessagingService, users) -> None:
        """Test a direct conversation shows the partner, last message and unread count."""
        created = await messaging_service.create_conversation(users.ada, [users.ben], initial_message="hello")
        await messaging_service.send_message(created.conversation_id, users.ada, "ping")

        listing = await messaging_service.list_conversations_for_user(users.ben)
        summary = listing.items[0]

        assert summary.kind == "direct"
        assert summary.title == "Ada Lovelace"
        assert summary.unread_count == 2
        assert summary.other_participant is not None
        assert summary.other_participant.id == users.ada
        assert summary.other_participant.profile_image == "/avatars/ada.png"
        assert summary.last_message.content == "ping"
        assert summary.last_message.sender_name == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_last_message_skips_deleted(self, messaging_service: MessagingService, users) -> None:
        """Test the preview falls back to the newest non-deleted message."""
        created = await messaging_service.create_conversation(users.ada, [users.ben], initial_message="keep me")
        latest = await messaging_service.send_message(created.conversation_id, users.ada, "delete me")
        await messaging_service.delete_message(created.conversation_id, latest.id, users.ada)

        listing = await messaging_service.list_conversations_for_user(users.ada)

        assert listing.items[0].last_message.content == "keep me"

    @pytest.mark.asyncio
    async def test_group_summary(self, messaging_service: MessagingService, users) -> None:
        """Test a group keeps its own title and has no single partner."""
        await messaging_service.create_conversation(users.ada, [users.ben, users.cai], kind="group", title="Physics 101")

        listing = await messaging_service.list_conversations_for_user(users.cai)
        summary = listing.items[0]

        assert summary.kind == "group"
        assert summary.title == "Physics 101"
        assert summary.other_participant is None
        assert summary.last_message is None
        assert summary.unread_count == 0

    @pytest.mark.asyncio
    async def test_no_conversations(self, messaging_service: MessagingService, users) -> None:
        """Test a user with no conversations gets an empty list."""
        listing = await messaging_service.list_conversations_for_user(users.cai)

        assert listing.items == []
        assert listing.total == 0

    @pytest.mark.asyncio
    async def test_only_own_conversations(self, messaging_service: MessagingService, users) -> None:
        """Test conversations the user is not in are not listed."""
        await messaging_service.create_conversation(users.ada, [users.ben])

        listing = await messaging_service.list_conversations_for_user(users.cai)

        assert listing.items == []


class TestSendNotifications:
    """Tests for notification dispatch after a send."""

    @pytest.mark.asyncio
    async def test_other_participants_notified(self, messaging_service: MessagingService, users, enqueued) -> None:
        """Test every participant except the sender gets a job."""
        created = await messaging_service.create_conversation(users.ada, [users.ben, users.cai], kind="group")

        message = await messaging_service.send_message(created.conversation_id, users.ada, "hi all")

        assert sorted(enqueued.recipients) == sorted([users.ben, users.cai])
        payload = enqueued.payloads[0]
        assert payload["related_message_id"] == message.id
        assert payload["conversation_id"] == created.conversation_id
        assert payload["sender_id"] == users.ada
        assert payload["title"] == "New Message"
        assert payload["body"] == "You have received a new message from Ada Lovelace."

    @pytest.mark.asyncio
    async def test_initial_message_notifies(self, messaging_service: MessagingService, users, enqueued) -> None:
        """Test a conversation created with a message notifies the partner."""
        await messaging_service.create_conversation(users.ada, [users.ben], initial_message="hi")

        assert enqueued.recipients == [users.ben]

    @pytest.mark.asyncio
    async def test_conversation_without_message_does_not_notify(
        self, messaging_service: MessagingService, users, enqueued
    ) -> None:
        """Test creating an empty conversation sends nothing."""
        await messaging_service.create_conversation(users.ada, [users.ben])

        assert enqueued.payloads == []

    @pytest.mark.asyncio
    async def test_opted_out_users_skipped(
        self, messaging_service: MessagingService, users, enqueued, db_session
    ) -> None:
        """Test users who disabled message notifications get no job."""
        db_session.add(UserSettings(user_id=users.ben, message_notifications=False))
        db_session.add(NotificationPreference(user_id=users.cai, notification_type="message", is_enabled=False))
        await db_session.commit()
        created = await messaging_service.create_conversation(users.ada, [users.ben, users.cai], kind="group")

        await messaging_service.send_message(created.conversation_id, users.ada, "anyone?")

        assert enqueued.payloads == []

    @pytest.mark.asyncio
    async def test_failed_validation_does_not_notify(self, messaging_service: MessagingService, users, enqueued) -> None:
        """Test nothing is dispatched for a rejected message."""
        created = await messaging_service.create_conversation(users.ada, [users.ben])

        with pytest.raises(ValidationError):
            await messaging_service.send_message(created.conversation_id, users.ada, "")

        assert enqueued.payloads == []

    @pytest.mark.asyncio
    async def test_enqueue_failure_does_not_fail_send(self, db_session, users, messaging_settings) -> None:
        """Test a broken queue is logged and the message is still stored."""
        broken = MagicMock(side_effect=ConnectionError("redis down"))
        service = MessagingService(
            db_session,
            settings=messaging_settings,
            dispatcher=NotificationDispatcher(enqueue=broken),
        )
        created = await service.create_conversation(users.ada, [users.ben])

        message = await service.send_message(created.conversation_id, users.ada, "still delivered")

        broken.assert_called_once()
        listing = await service.list_messages(created.conversation_id, users.ben)
        assert [m.id for m in listing.items] == [message.id]


class TestTransactionBoundary:
    """Tests for rollback and error translation."""

    @pytest.mark.asyncio
    async def test_store_outage_becomes_transient_error(self, messaging_service: MessagingService, users) -> None:
        """Test an operational error is surfaced as retryable."""
        created = await messaging_service.create_conversation(users.ada, [users.ben])
        messaging_service.store.append = AsyncMock(
            side_effect=OperationalError("INSERT", {}, Exception("connection reset"))
        )

        with pytest.raises(TransientStoreError):
            await messaging_service.send_message(created.conversation_id, users.ada, "hello")

    @pytest.mark.asyncio
    async def test_driver_error_becomes_transient_error(self, messaging_service: MessagingService, users) -> None:
        """Test an unmapped driver error is also surfaced as retryable."""
        created = await messaging_service.create_conversation(users.ada, [users.ben])
        messaging_service.store.append = AsyncMock(
            side_effect=DBAPIError("SELECT 1", {}, Exception("connection reset"))
        )

        with pytest.raises(TransientStoreError):
            await messaging_service.send_message(created.conversation_id, users.ada, "hello")

    @pytest.mark.asyncio
    async def test_unexpected_integrity_error_becomes_conflict(self, messaging_service: MessagingService, users) -> None:
        """Test an integrity error outside direct resolution is a conflict."""
        created = await messaging_service.create_conversation(users.ada, [users.ben])
        messaging_service.store.append = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("duplicate"))
        )

        with pytest.raises(ConflictError):
            await messaging_service.send_message(created.conversation_id, users.ada, "hello")

    @pytest.mark.asyncio
    async def test_failed_send_rolls_back(self, messaging_service: MessagingService, users, db_session) -> None:
        """Test a failure after the insert leaves no message behind."""
        created = await messaging_service.create_conversation(users.ada, [users.ben])
        messaging_service.store.participant_ids = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("timeout"))
        )

        with pytest.raises(TransientStoreError):
            await messaging_service.send_message(created.conversation_id, users.ada, "lost")

        assert await messaging_service.receipts.unread_count(created.conversation_id, users.ben) == 0

    @pytest.mark.asyncio
    async def test_outage_does_not_notify(self, messaging_service: MessagingService, users, enqueued) -> None:
        """Test nothing is dispatched when the unit fails."""
        created = await messaging_service.create_conversation(users.ada, [users.ben])
        messaging_service.store.append = AsyncMock(
            side_effect=OperationalError("INSERT", {}, Exception("connection reset"))
        )

        with pytest.raises(TransientStoreError):
            await messaging_service.send_message(created.conversation_id, users.ada, "hello")

        assert enqueued.payloads == []


class TestSearchUsers:
    """Tests for the user search used to start conversations."""

    @pytest.mark.asyncio
    async def test_search_by_name(self, messaging_service: MessagingService, users) -> None:
        """Test a case-insensitive name match."""
        result = await messaging_service.search_users(users.ada, "CAI")

        assert [u.id for u in result.items] == [users.cai]

    @pytest.mark.asyncio
    async def test_search_by_email(self, messaging_service: MessagingService, users) -> None:
        """Test an email substring match."""
        result = await messaging_service.search_users(users.ada, "ben@")

        assert [u.full_name for u in result.items] == ["Ben Carter"]

    @pytest.mark.asyncio
    async def test_requester_and_inactive_excluded(self, messaging_service: MessagingService, users) -> None:
        """Test an empty query lists other active users alphabetically."""
        result = await messaging_service.search_users(users.ada, None)

        assert [u.id for u in result.items] == [users.ben, users.cai]

    @pytest.mark.asyncio
    async def test_wildcards_are_literal(self, messaging_service: MessagingService, users) -> None:
        """Test SQL wildcard characters in the query match nothing special."""
        result = await messaging_service.search_users(users.ada, "%")

        assert result.items == []
