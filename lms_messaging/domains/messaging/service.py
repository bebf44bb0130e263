# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Messaging service: the operations exposed to routes and other callers.

Every operation takes the caller's user id explicitly and runs as one
transactional unit on the injected session. The unit commits on success
and rolls back on any error, so conversation creation and message append
never leave partial state. Store failures surface as TransientStoreError.

Notification dispatch runs after the unit has committed.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.core.config.settings import MessagingSettings
from lms_messaging.domains.directory.service import UserDirectory
from lms_messaging.domains.messaging.dispatcher import NotificationDispatcher
from lms_messaging.domains.messaging.errors import (
    ConflictError,
    MessagingError,
    TransientStoreError,
)
from lms_messaging.domains.messaging.read_cursor import ReadCursorTracker
from lms_messaging.domains.messaging.receipts import ReceiptCalculator
from lms_messaging.domains.messaging.repository import ConversationRepository
from lms_messaging.domains.messaging.resolver import ConversationResolver
from lms_messaging.domains.messaging.store import MessageStore
from lms_messaging.infrastructure.database.models.messaging import ConversationKind
from lms_messaging.infrastructure.notifications.preferences import NotificationPreferences
from lms_messaging.models.messaging import (
    AttachmentRef,
    ConversationListResponse,
    ConversationSummary,
    CreateConversationResponse,
    LastMessage,
    MarkReadResponse,
    MessageListResponse,
    MessageResponse,
    UserSearchResponse,
)
from lms_messaging.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (DBAPIError, PoolTimeoutError, TimeoutError)


class MessagingService:
    """Conversation and message operations for LMS users.

    Attributes:
        db: Async database session.
        directory: User directory collaborator.
        store: Message store.
        cursors: Read-cursor tracker.
        receipts: Unread/receipt calculator.
        conversations: Conversation repository.
        resolver: Conversation resolver.
        dispatcher: Notification dispatcher.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: MessagingSettings | None = None,
        directory: UserDirectory | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        """Initialize the messaging service.

        Args:
            db: Async database session shared by all components.
            settings: Messaging settings; defaults are used when omitted.
            directory: User directory; defaults to one on the same session.
            dispatcher: Notification dispatcher; defaults to the queued
                dispatcher with preference checks on the same session.
        """
        settings = settings or MessagingSettings()
        self.db = db
        self.search_limit = settings.user_search_limit

        self.directory = directory or UserDirectory(db)
        self.cursors = ReadCursorTracker(db)
        self.receipts = ReceiptCalculator(db)
        self.store = MessageStore(
            db,
            directory=self.directory,
            cursors=self.cursors,
            receipts=self.receipts,
            max_content_length=settings.max_content_length,
        )
        self.conversations = ConversationRepository(db)
        self.resolver = ConversationResolver(db, self.conversations, self.store, self.directory)
        self.dispatcher = dispatcher or NotificationDispatcher(
            preferences=NotificationPreferences(db),
            enabled=settings.notifications_enabled,
        )

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    @asynccontextmanager
    async def _unit(self, operation: str, **context: object) -> AsyncIterator[None]:
        """Run a block as one transaction with error translation.

        Args:
            operation: Operation name for logs.
            **context: Identifiers included in error logs.

        Raises:
            TransientStoreError: If the store is unavailable or timed out.
            ConflictError: If an unexpected uniqueness conflict occurs.
        """
        try:
            yield
            await self.db.commit()
        except MessagingError:
            await self._rollback(operation)
            raise
        except IntegrityError as e:
            await self._rollback(operation)
            logger.error("Integrity conflict during %s %s: %s", operation, context, str(e))
            raise ConflictError(f"Conflicting write during {operation}") from e
        except TRANSIENT_ERRORS as e:
            await self._rollback(operation)
            logger.error(
                "Store unavailable during %s %s: %s",
                operation,
                context,
                str(e),
                exc_info=True,
            )
            raise TransientStoreError(f"Store unavailable during {operation}") from e

    async def _rollback(self, operation: str) -> None:
        """Roll back the session, logging if the connection is already gone."""
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning("Rollback after failed %s also failed: %s", operation, str(e))

    # =========================================================================
    # Conversations
    # =========================================================================

    async def create_conversation(
        self,
        initiator_id: int,
        participant_ids: Iterable[int],
        kind: ConversationKind | str = ConversationKind.DIRECT,
        title: str | None = None,
        initial_message: str | None = None,
        attachment: AttachmentRef | None = None,
    ) -> CreateConversationResponse:
        """Start a conversation or reuse the existing direct one.

        Args:
            initiator_id: Caller.
            participant_ids: Other participants; the caller is added.
            kind: Direct or group.
            title: Optional title.
            initial_message: Optional first message.
            attachment: Optional first attachment.

        Returns:
            Conversation id, already_exists flag and the initial message.

        Raises:
            ValidationError: If the request is malformed.
            TransientStoreError: If the store is unavailable.
        """
        async with self._unit("create_conversation", initiator_id=initiator_id):
            resolution = await self.resolver.resolve_or_create(
                initiator_id,
                participant_ids,
                kind=kind,
                title=title,
                initial_message=initial_message,
                attachment=attachment,
            )

        if resolution.message is not None:
            await self.dispatcher.dispatch(resolution.message, resolution.participant_ids)

        return CreateConversationResponse(
            conversation_id=resolution.conversation_id,
            already_exists=resolution.already_exists,
            message=resolution.message,
        )

    async def list_conversations_for_user(self, user_id: int) -> ConversationListResponse:
        """List the user's conversations, most recently active first.

        Last messages, direct partners, unread counts and profiles are each
        loaded for the whole list in one query.

        Args:
            user_id: Caller.

        Returns:
            Conversation summaries.
        """
        async with self._unit("list_conversations", user_id=user_id):
            conversations = await self.conversations.list_for_user(user_id)
            ids = [c.id for c in conversations]

            last_messages = await self.conversations.last_messages(ids)
            others = await self.conversations.other_participants(
                user_id, [c.id for c in conversations if c.is_direct]
            )
            unread = await self.receipts.unread_counts(user_id, ids)
            profiles = await self.directory.get_profiles(
                set(others.values()) | {m.sender_id for m in last_messages.values()}
            )

            items = []
            for conversation in conversations:
                other = profiles.get(others[conversation.id]) if conversation.id in others else None
                last = last_messages.get(conversation.id)
                sender = profiles.get(last.sender_id) if last else None

                items.append(
                    ConversationSummary(
                        id=conversation.id,
                        title=conversation.title or (other.full_name if other else None),
                        kind=conversation.kind,
                        unread_count=unread.get(conversation.id, 0),
                        last_message=LastMessage(
                            id=last.id,
                            content=last.content,
                            sender_id=last.sender_id,
                            sender_name=sender.full_name if sender else None,
                            sender_profile_image=sender.profile_image if sender else None,
                            attachment_type=last.attachment_type,
                            created_at=ensure_utc(last.created_at),
                        )
                        if last
                        else None,
                        other_participant=other,
                        created_at=ensure_utc(conversation.created_at),
                        updated_at=ensure_utc(conversation.updated_at),
                    )
                )

        return ConversationListResponse(items=items, total=len(items))

    # =========================================================================
    # Messages
    # =========================================================================

    async def list_messages(self, conversation_id: int, requester_id: int) -> MessageListResponse:
        """List messages oldest first and mark them read for the requester.

        Args:
            conversation_id: Conversation to read.
            requester_id: Caller; must be a participant.

        Returns:
            Messages with receipts and the requester's new cursor.

        Raises:
            NotFoundError: If the conversation does not exist.
            AuthorizationError: If the requester is not a participant.
        """
        async with self._unit(
            "list_messages", conversation_id=conversation_id, requester_id=requester_id
        ):
            messages, cursor = await self.store.list(conversation_id, requester_id)

        return MessageListResponse(items=messages, last_read_message_id=cursor)

    async def send_message(
        self,
        conversation_id: int,
        sender_id: int,
        content: str | None,
        attachment: AttachmentRef | None = None,
    ) -> MessageResponse:
        """Append a message and notify the other participants.

        Args:
            conversation_id: Target conversation.
            sender_id: Caller; must be a participant.
            content: Message text.
            attachment: Optional attachment.

        Returns:
            The stored message.

        Raises:
            NotFoundError: If the conversation does not exist.
            AuthorizationError: If the sender is not a participant.
            ValidationError: If the message is empty or too long.
            TransientStoreError: If the store is unavailable.
        """
        async with self._unit("send_message", conversation_id=conversation_id, sender_id=sender_id):
            message = await self.store.append(conversation_id, sender_id, content, attachment)
            participants = await self.store.participant_ids(conversation_id)

        await self.dispatcher.dispatch(message, participants)
        return message

    async def mark_read(self, conversation_id: int, user_id: int) -> MarkReadResponse:
        """Advance the user's cursor to the newest message without fetching.

        Raises:
            NotFoundError: If the conversation does not exist.
            AuthorizationError: If the user is not a participant.
        """
        async with self._unit("mark_read", conversation_id=conversation_id, user_id=user_id):
            await self.store.get_conversation(conversation_id)
            latest = await self.store.latest_message_id(conversation_id)
            cursor = await self.cursors.advance(conversation_id, user_id, latest)

        return MarkReadResponse(conversation_id=conversation_id, last_read_message_id=cursor)

    async def delete_message(self, conversation_id: int, message_id: int, requester_id: int) -> None:
        """Soft-delete a message sent by the requester."""
        async with self._unit(
            "delete_message",
            conversation_id=conversation_id,
            message_id=message_id,
            requester_id=requester_id,
        ):
            await self.store.soft_delete(conversation_id, message_id, requester_id)

    # =========================================================================
    # Users
    # =========================================================================

    async def search_users(self, requester_id: int, query: str | None) -> UserSearchResponse:
        """Find users to start a conversation with.

        Args:
            requester_id: Caller, excluded from results.
            query: Name or email substring.

        Returns:
            Matching user profiles.
        """
        async with self._unit("search_users", requester_id=requester_id):
            users = await self.directory.search(requester_id, query, limit=self.search_limit)
        return UserSearchResponse(items=users)
