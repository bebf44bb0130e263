# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Append-only, per-conversation ordered message log.

Message ids come from one global sequence. Appends lock the conversation
row for the rest of the transaction, so within a conversation the order of
id assignment matches commit order and listings sorted by id never
reorder between calls.

Listing is a read with a side effect: a successful list advances the
requester's read cursor to the newest message of the conversation
("viewing implies reading"). Clients that only want to clear the unread
badge call mark-read on the service instead.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.domains.directory.service import UserDirectory
from lms_messaging.domains.messaging.errors import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from lms_messaging.domains.messaging.read_cursor import ReadCursorTracker
from lms_messaging.domains.messaging.receipts import Receipt, ReceiptCalculator, compute_receipt
from lms_messaging.infrastructure.database.models.messaging import (
    Conversation,
    ConversationParticipant,
    Message,
)
from lms_messaging.models.messaging import AttachmentRef, MessageResponse, UserProfile
from lms_messaging.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_LENGTH = 10_000


def to_message_response(
    message: Message,
    sender: UserProfile | None,
    receipt: Receipt | None = None,
) -> MessageResponse:
    """Build the API view of a stored message.

    Args:
        message: Stored message row.
        sender: Sender profile, if the sender still exists.
        receipt: Read receipt, if computed.

    Returns:
        MessageResponse with sender display data.
    """
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        sender_name=sender.full_name if sender else None,
        sender_profile_image=sender.profile_image if sender else None,
        sender_campus=sender.campus if sender else None,
        content=message.content,
        attachment_url=message.attachment_url,
        attachment_type=message.attachment_type,
        created_at=ensure_utc(message.created_at),
        read_by=receipt.read_by if receipt else [],
        read_by_all=receipt.read_by_all if receipt else False,
    )


class MessageStore:
    """Appends and lists messages of a conversation.

    Attributes:
        db: Async database session. The caller owns the transaction.
        directory: User directory for sender display data.
        cursors: Read-cursor tracker used by list().
        receipts: Receipt calculator used to annotate messages.
        max_content_length: Maximum characters in a message body.
    """

    def __init__(
        self,
        db: AsyncSession,
        directory: UserDirectory | None = None,
        cursors: ReadCursorTracker | None = None,
        receipts: ReceiptCalculator | None = None,
        max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH,
    ) -> None:
        """Initialize the message store.

        Args:
            db: Async database session.
            directory: User directory; defaults to one on the same session.
            cursors: Read-cursor tracker; defaults to one on the same session.
            receipts: Receipt calculator; defaults to one on the same session.
            max_content_length: Maximum characters in a message body.
        """
        self.db = db
        self.directory = directory or UserDirectory(db)
        self.cursors = cursors or ReadCursorTracker(db)
        self.receipts = receipts or ReceiptCalculator(db)
        self.max_content_length = max_content_length

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_conversation(self, conversation_id: int, lock: bool = False) -> Conversation:
        """Load a conversation.

        Args:
            conversation_id: Conversation to load.
            lock: Take a row lock (SELECT ... FOR UPDATE) until the
                transaction ends.

        Returns:
            The conversation.

        Raises:
            NotFoundError: If the conversation does not exist.
        """
        stmt = select(Conversation).where(Conversation.id == conversation_id)
        if lock:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    async def participant_ids(self, conversation_id: int) -> list[int]:
        """Return participant user ids of a conversation, sorted."""
        result = await self.db.execute(
            select(ConversationParticipant.user_id)
            .where(ConversationParticipant.conversation_id == conversation_id)
            .order_by(ConversationParticipant.user_id)
        )
        return list(result.scalars().all())

    async def require_participant(self, conversation_id: int, user_id: int) -> None:
        """Ensure the user participates in the conversation.

        Raises:
            AuthorizationError: If the user is not a participant.
        """
        result = await self.db.execute(
            select(ConversationParticipant.user_id).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
        )
        if result.scalar_one_or_none() is None:
            raise AuthorizationError("not a participant")

    async def latest_message_id(self, conversation_id: int) -> int:
        """Return the highest message id in the conversation, or 0 if empty."""
        result = await self.db.execute(
            select(func.coalesce(func.max(Message.id), 0)).where(
                Message.conversation_id == conversation_id
            )
        )
        return int(result.scalar_one())

    def normalize_content(self, content: str | None, attachment: AttachmentRef | None) -> str:
        """Validate and normalize a message body.

        Args:
            content: Raw message text.
            attachment: Optional attachment reference.

        Returns:
            Content stripped of surrounding whitespace.

        Raises:
            ValidationError: If both content and attachment are empty, or
                the content is too long.
        """
        text = (content or "").strip()
        if not text and attachment is None:
            raise ValidationError("Message content or attachment is required")
        if len(text) > self.max_content_length:
            raise ValidationError(
                f"Message content exceeds {self.max_content_length} characters"
            )
        return text

    # =========================================================================
    # Append
    # =========================================================================

    async def append(
        self,
        conversation_id: int,
        sender_id: int,
        content: str | None,
        attachment: AttachmentRef | None = None,
    ) -> MessageResponse:
        """Append a message to a conversation.

        Locks the conversation row, inserts the message and bumps
        updated_at. Does not commit.

        Args:
            conversation_id: Target conversation.
            sender_id: Sending user.
            content: Message text; may be empty when an attachment is given.
            attachment: Optional attachment reference.

        Returns:
            The stored message with sender display data.

        Raises:
            NotFoundError: If the conversation does not exist.
            AuthorizationError: If the sender is not a participant.
            ValidationError: If the message is empty or too long.
        """
        conversation = await self.get_conversation(conversation_id, lock=True)
        await self.require_participant(conversation_id, sender_id)
        text = self.normalize_content(content, attachment)

        now = utc_now()
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=text,
            attachment_url=attachment.url if attachment else None,
            attachment_type=attachment.content_type if attachment else None,
            created_at=now,
            deleted=False,
        )
        self.db.add(message)
        conversation.updated_at = now
        await self.db.flush()

        logger.info(
            "Appended message %s to conversation %s from user %s",
            message.id,
            conversation_id,
            sender_id,
        )

        sender = await self.directory.get_profile(sender_id)
        cursors = await self.receipts.participant_cursors(conversation_id)
        return to_message_response(
            message,
            sender,
            compute_receipt(message.id, message.sender_id, cursors),
        )

    # =========================================================================
    # List
    # =========================================================================

    async def list(
        self,
        conversation_id: int,
        requester_id: int,
    ) -> tuple[list[MessageResponse], int]:
        """List non-deleted messages, oldest first, and mark them read.

        The requester's cursor is advanced to the newest message id before
        receipts are derived, so the requester's own read shows up in the
        returned receipts.

        Args:
            conversation_id: Conversation to list.
            requester_id: Caller; must be a participant.

        Returns:
            Tuple of (messages, requester cursor after the advance).

        Raises:
            NotFoundError: If the conversation does not exist.
            AuthorizationError: If the requester is not a participant.
        """
        await self.get_conversation(conversation_id)
        await self.require_participant(conversation_id, requester_id)

        latest = await self.latest_message_id(conversation_id)
        cursor = await self.cursors.advance(conversation_id, requester_id, latest)

        result = await self.db.execute(
            select(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.deleted.is_(False),
            )
            .order_by(Message.id)
        )
        messages = list(result.scalars().all())

        senders = await self.directory.get_profiles(m.sender_id for m in messages)
        cursors = await self.receipts.participant_cursors(conversation_id)
        receipts = self.receipts.receipts_for(
            ((m.id, m.sender_id) for m in messages), cursors
        )

        return (
            [
                to_message_response(m, senders.get(m.sender_id), receipts[m.id])
                for m in messages
            ],
            cursor,
        )

    # =========================================================================
    # Soft delete
    # =========================================================================

    async def soft_delete(
        self,
        conversation_id: int,
        message_id: int,
        requester_id: int,
    ) -> None:
        """Mark a message deleted. Only its sender may do this.

        Deleting an already deleted message is a no-op.

        Raises:
            NotFoundError: If the conversation or message does not exist.
            AuthorizationError: If the requester is not the sender.
        """
        await self.get_conversation(conversation_id)
        await self.require_participant(conversation_id, requester_id)

        result = await self.db.execute(
            select(Message).where(
                Message.id == message_id,
                Message.conversation_id == conversation_id,
            )
        )
        message = result.scalar_one_or_none()
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        if message.sender_id != requester_id:
            raise AuthorizationError("Only the sender can delete a message")

        if not message.deleted:
            message.deleted = True
            await self.db.flush()
            logger.info(
                "Message %s in conversation %s deleted by user %s",
                message_id,
                conversation_id,
                requester_id,
            )
