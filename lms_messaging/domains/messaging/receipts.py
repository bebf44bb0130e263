# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unread counts and read receipts.

Nothing here is persisted. Every value is derived from the message log
and the participants' read cursors:

    unread(c, u)   = |{m in c : m.sender != u, m.id > cursor(c, u), not m.deleted}|
    read_by(m)     = {p in participants(m.c) : p != m.sender, cursor(m.c, p) >= m.id}
    read_by_all(m) = |read_by(m)| == |participants(m.c)| - 1
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.infrastructure.database.models.messaging import (
    ConversationParticipant,
    Message,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Receipt:
    """Read state of one message.

    Attributes:
        read_by: Participants other than the sender whose cursor has
            reached the message, sorted by user id.
        read_by_all: Whether every other participant has read it.
    """

    read_by: list[int]
    read_by_all: bool


def compute_receipt(message_id: int, sender_id: int, cursors: Mapping[int, int]) -> Receipt:
    """Derive the receipt of one message from participant cursors.

    Args:
        message_id: Message id.
        sender_id: Message sender.
        cursors: Mapping of participant user id to last_read_message_id.
            Must contain every participant of the conversation.

    Returns:
        Receipt for the message.
    """
    read_by = sorted(
        user_id
        for user_id, cursor in cursors.items()
        if user_id != sender_id and cursor >= message_id
    )
    return Receipt(
        read_by=read_by,
        read_by_all=len(read_by) == len(cursors) - 1,
    )


class ReceiptCalculator:
    """Database-backed unread counts and receipt inputs."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def participant_cursors(self, conversation_id: int) -> dict[int, int]:
        """Load every participant's cursor for a conversation.

        Args:
            conversation_id: Conversation to load.

        Returns:
            Mapping of user id to last_read_message_id.
        """
        result = await self.db.execute(
            select(
                ConversationParticipant.user_id,
                ConversationParticipant.last_read_message_id,
            ).where(ConversationParticipant.conversation_id == conversation_id)
        )
        return {user_id: cursor for user_id, cursor in result.all()}

    async def unread_count(self, conversation_id: int, user_id: int) -> int:
        """Count messages the user has not read in one conversation."""
        counts = await self.unread_counts(user_id, [conversation_id])
        return counts.get(conversation_id, 0)

    async def unread_counts(
        self,
        user_id: int,
        conversation_ids: Iterable[int],
    ) -> dict[int, int]:
        """Count unread messages for many conversations in one query.

        Args:
            user_id: Reader whose cursors are used.
            conversation_ids: Conversations to count.

        Returns:
            Mapping of conversation id to unread count. Conversations with
            nothing unread map to 0.
        """
        ids = list(dict.fromkeys(int(c) for c in conversation_ids))
        if not ids:
            return {}

        stmt = (
            select(Message.conversation_id, func.count(Message.id))
            .join(
                ConversationParticipant,
                and_(
                    ConversationParticipant.conversation_id == Message.conversation_id,
                    ConversationParticipant.user_id == user_id,
                ),
            )
            .where(
                Message.conversation_id.in_(ids),
                Message.sender_id != user_id,
                Message.deleted.is_(False),
                Message.id > ConversationParticipant.last_read_message_id,
            )
            .group_by(Message.conversation_id)
        )
        result = await self.db.execute(stmt)

        counts = {conversation_id: 0 for conversation_id in ids}
        counts.update({conversation_id: count for conversation_id, count in result.all()})
        return counts

    def receipts_for(
        self,
        messages: Iterable[tuple[int, int]],
        cursors: Mapping[int, int],
    ) -> dict[int, Receipt]:
        """Derive receipts for (id, sender_id) pairs of one conversation."""
        return {
            message_id: compute_receipt(message_id, sender_id, cursors)
            for message_id, sender_id in messages
        }
