# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversation persistence and batched conversation-list reads.

The conversation list needs, per conversation, the newest message, the
other participant of a direct conversation and the caller's unread count.
Each of those is loaded for the whole page with a single query instead of
per-row subqueries.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.infrastructure.database.models.messaging import (
    Conversation,
    ConversationKind,
    ConversationParticipant,
    Message,
)
from lms_messaging.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class ConversationRepository:
    """Conversation rows and their participants.

    Attributes:
        db: Async database session. The caller owns the transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(
        self,
        kind: ConversationKind,
        participant_ids: Iterable[int],
        title: str | None = None,
        direct_key: str | None = None,
    ) -> int:
        """Insert a conversation and its participant rows, then flush.

        A duplicate direct_key surfaces as IntegrityError from the flush.

        Args:
            kind: Direct or group.
            participant_ids: Members, including the creator.
            title: Optional title.
            direct_key: Canonical pair key for direct conversations.

        Returns:
            The new conversation id.
        """
        now = utc_now()
        conversation = Conversation(
            kind=kind.value,
            title=title,
            direct_key=direct_key,
            created_at=now,
            updated_at=now,
        )
        self.db.add(conversation)
        await self.db.flush()

        self.db.add_all(
            ConversationParticipant(
                conversation_id=conversation.id,
                user_id=user_id,
                last_read_message_id=0,
                joined_at=now,
            )
            for user_id in sorted(set(participant_ids))
        )
        await self.db.flush()
        return conversation.id

    # =========================================================================
    # Reads
    # =========================================================================

    async def find_direct(self, direct_key: str) -> int | None:
        """Return the id of the direct conversation for a pair key, if any."""
        result = await self.db.execute(
            select(Conversation.id).where(
                Conversation.direct_key == direct_key,
                Conversation.kind == ConversationKind.DIRECT.value,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int) -> list[Conversation]:
        """Conversations the user participates in, most recently active first."""
        result = await self.db.execute(
            select(Conversation)
            .join(
                ConversationParticipant,
                ConversationParticipant.conversation_id == Conversation.id,
            )
            .where(ConversationParticipant.user_id == user_id)
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
        )
        return list(result.scalars().all())

    async def last_messages(self, conversation_ids: Iterable[int]) -> dict[int, Message]:
        """Newest non-deleted message of each conversation.

        Args:
            conversation_ids: Conversations to load.

        Returns:
            Mapping of conversation id to its newest message. Conversations
            with no messages are absent.
        """
        ids = list(conversation_ids)
        if not ids:
            return {}

        newest = (
            select(func.max(Message.id).label("message_id"))
            .where(
                Message.conversation_id.in_(ids),
                Message.deleted.is_(False),
            )
            .group_by(Message.conversation_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Message).where(Message.id.in_(select(newest.c.message_id)))
        )
        return {message.conversation_id: message for message in result.scalars().all()}

    async def other_participants(
        self,
        user_id: int,
        conversation_ids: Iterable[int],
    ) -> dict[int, int]:
        """The non-caller participant of each direct conversation.

        Args:
            user_id: Caller.
            conversation_ids: Direct conversations.

        Returns:
            Mapping of conversation id to the other user's id.
        """
        ids = list(conversation_ids)
        if not ids:
            return {}

        result = await self.db.execute(
            select(
                ConversationParticipant.conversation_id,
                ConversationParticipant.user_id,
            ).where(
                ConversationParticipant.conversation_id.in_(ids),
                ConversationParticipant.user_id != user_id,
            )
        )
        return {conversation_id: other_id for conversation_id, other_id in result.all()}
