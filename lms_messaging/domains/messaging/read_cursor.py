# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-participant read cursors.

A cursor is the id of the last message a participant has seen in a
conversation. Cursors only move forward, and each user only ever writes
their own, so a conditional UPDATE is enough to keep them monotonic under
concurrent requests.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.domains.messaging.errors import AuthorizationError
from lms_messaging.infrastructure.database.models.messaging import ConversationParticipant

logger = logging.getLogger(__name__)


class ReadCursorTracker:
    """Advances and reads participant read cursors."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, conversation_id: int, user_id: int) -> int | None:
        """Return the user's cursor, or None if they are not a participant."""
        result = await self.db.execute(
            select(ConversationParticipant.last_read_message_id).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def advance(self, conversation_id: int, user_id: int, to_message_id: int) -> int:
        """Move the cursor to max(current, to_message_id).

        Args:
            conversation_id: Conversation the cursor belongs to.
            user_id: Owner of the cursor.
            to_message_id: Candidate new position.

        Returns:
            The cursor value after the update.

        Raises:
            AuthorizationError: If the user is not a participant.
        """
        await self.db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.last_read_message_id < to_message_id,
            )
            .values(last_read_message_id=to_message_id)
            .execution_options(synchronize_session=False)
        )

        current = await self.get(conversation_id, user_id)
        if current is None:
            raise AuthorizationError("not a participant")

        logger.debug(
            "Read cursor for user %s in conversation %s is now %s",
            user_id,
            conversation_id,
            current,
        )
        return current
