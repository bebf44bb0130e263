# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversation creation and direct-conversation deduplication.

At most one direct conversation exists per unordered user pair. The
guarantee comes from the UNIQUE constraint on conversations.direct_key,
not from the lookup that precedes the insert: when two callers race to
create the same pair, the loser's insert fails with IntegrityError, its
unit is rolled back, and it retries as a lookup that returns the winner's
conversation with already_exists=True.

Group conversations are never deduplicated.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.domains.directory.service import UserDirectory
from lms_messaging.domains.messaging.errors import ConflictError, ValidationError
from lms_messaging.domains.messaging.repository import ConversationRepository
from lms_messaging.domains.messaging.store import MessageStore
from lms_messaging.infrastructure.database.models.messaging import (
    ConversationKind,
    make_direct_key,
)
from lms_messaging.models.messaging import AttachmentRef, MessageResponse

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    """Outcome of resolve_or_create.

    Attributes:
        conversation_id: Created or reused conversation.
        already_exists: True when an existing direct conversation was reused.
        participant_ids: Resolved participant set, sorted.
        message: The initial message, when one was supplied.
    """

    conversation_id: int
    already_exists: bool
    participant_ids: list[int] = field(default_factory=list)
    message: MessageResponse | None = None


class ConversationResolver:
    """Creates conversations and reuses existing direct ones.

    Attributes:
        db: Async database session. The caller commits.
        repository: Conversation persistence.
        store: Message store for the optional initial message.
        directory: User directory for participant validation.
    """

    def __init__(
        self,
        db: AsyncSession,
        repository: ConversationRepository,
        store: MessageStore,
        directory: UserDirectory,
    ) -> None:
        """Initialize the resolver.

        Args:
            db: Async database session.
            repository: Conversation persistence.
            store: Message store.
            directory: User directory.
        """
        self.db = db
        self.repository = repository
        self.store = store
        self.directory = directory

    async def resolve_or_create(
        self,
        initiator_id: int,
        participant_ids: Iterable[int],
        kind: ConversationKind | str = ConversationKind.DIRECT,
        title: str | None = None,
        initial_message: str | None = None,
        attachment: AttachmentRef | None = None,
    ) -> Resolution:
        """Create a conversation, or reuse the existing direct one.

        The initiator is added to the participant set. For a direct
        conversation the resolved set must contain exactly two users. When
        an existing direct conversation is reused, a supplied initial
        message is appended to it.

        Args:
            initiator_id: Caller creating the conversation.
            participant_ids: Other participants.
            kind: Direct or group.
            title: Optional title.
            initial_message: Optional first message text.
            attachment: Optional first message attachment.

        Returns:
            Resolution with the conversation id and already_exists flag.

        Raises:
            ValidationError: If the participant set is empty, a direct
                set does not have exactly two users, a participant does not
                exist, or the initial message is invalid.
            ConflictError: If a direct key conflict cannot be resolved to
                an existing conversation.
        """
        requested = {int(user_id) for user_id in participant_ids}
        if not requested:
            raise ValidationError("At least one participant is required")

        try:
            kind = ConversationKind(kind)
        except ValueError as e:
            raise ValidationError(f"Unknown conversation kind: {kind}") from e

        members = sorted(requested | {int(initiator_id)})
        if kind is ConversationKind.DIRECT and len(members) != 2:
            raise ValidationError(
                f"A direct conversation needs exactly 2 participants, got {len(members)}"
            )

        missing = await self.directory.missing_users(members)
        if missing:
            raise ValidationError(
                "Unknown participants: " + ", ".join(str(user_id) for user_id in sorted(missing))
            )

        has_message = bool((initial_message or "").strip()) or attachment is not None
        if has_message:
            self.store.normalize_content(initial_message, attachment)

        if kind is ConversationKind.DIRECT:
            return await self._resolve_direct(
                initiator_id, members, title, initial_message, attachment, has_message
            )

        conversation_id = await self.repository.create(kind, members, title=title)
        logger.info(
            "Created group conversation %s with %d participants by user %s",
            conversation_id,
            len(members),
            initiator_id,
        )
        return await self._finish(
            conversation_id, False, initiator_id, members, initial_message, attachment, has_message
        )

    async def _resolve_direct(
        self,
        initiator_id: int,
        members: list[int],
        title: str | None,
        initial_message: str | None,
        attachment: AttachmentRef | None,
        has_message: bool,
    ) -> Resolution:
        """Look up the pair, insert when absent, retry as lookup on conflict."""
        direct_key = make_direct_key(*members)

        existing_id = await self.repository.find_direct(direct_key)
        if existing_id is not None:
            logger.debug("Reusing direct conversation %s for %s", existing_id, direct_key)
            return await self._finish(
                existing_id, True, initiator_id, members, initial_message, attachment, has_message
            )

        try:
            conversation_id = await self.repository.create(
                ConversationKind.DIRECT, members, title=title, direct_key=direct_key
            )
        except IntegrityError as e:
            # Another request created the pair between our lookup and insert
            await self.db.rollback()
            existing_id = await self.repository.find_direct(direct_key)
            if existing_id is None:
                logger.error(
                    "Direct key %s conflicted but no conversation exists: %s",
                    direct_key,
                    e,
                )
                raise ConflictError(
                    f"Could not resolve direct conversation for {direct_key}"
                ) from e

            logger.info(
                "Lost creation race for %s, reusing conversation %s",
                direct_key,
                existing_id,
            )
            return await self._finish(
                existing_id, True, initiator_id, members, initial_message, attachment, has_message
            )

        logger.info("Created direct conversation %s for %s", conversation_id, direct_key)
        return await self._finish(
            conversation_id, False, initiator_id, members, initial_message, attachment, has_message
        )

    async def _finish(
        self,
        conversation_id: int,
        already_exists: bool,
        initiator_id: int,
        members: list[int],
        initial_message: str | None,
        attachment: AttachmentRef | None,
        has_message: bool,
    ) -> Resolution:
        """Append the optional initial message and build the result."""
        message = None
        if has_message:
            message = await self.store.append(
                conversation_id, initiator_id, initial_message, attachment
            )

        return Resolution(
            conversation_id=conversation_id,
            already_exists=already_exists,
            participant_ids=members,
            message=message,
        )
