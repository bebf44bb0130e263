# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversation, participant and message models.

Invariants held at the schema level:
- direct_key is UNIQUE, so at most one Direct conversation exists per
  unordered user pair. Group conversations leave it NULL.
- (conversation_id, user_id) is the participant primary key.
- messages.id is a single global autoincrement, so ids are strictly
  increasing within every conversation.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from lms_messaging.infrastructure.database.models.base import Base, BigIntId, TimestampMixin
from lms_messaging.utils.datetime import utc_now


class ConversationKind(str, Enum):
    """Conversation kinds."""

    DIRECT = "direct"
    GROUP = "group"


def make_direct_key(user_a: int, user_b: int) -> str:
    """Build the canonical key for an unordered user pair.

    Args:
        user_a: One participant.
        user_b: The other participant.

    Returns:
        "{min}:{max}" of the two ids.
    """
    low, high = sorted((int(user_a), int(user_b)))
    return f"{low}:{high}"


class Conversation(TimestampMixin, Base):
    """A direct or group conversation.

    updated_at is bumped on every appended message and drives the
    conversation list order.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        CheckConstraint("kind IN ('direct', 'group')", name="valid_kind"),
        CheckConstraint(
            "(kind = 'direct' AND direct_key IS NOT NULL) "
            "OR (kind = 'group' AND direct_key IS NULL)",
            name="direct_key_matches_kind",
        ),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(10), nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    direct_key: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)

    @property
    def is_direct(self) -> bool:
        """Check if this is a direct conversation."""
        return self.kind == ConversationKind.DIRECT.value


class ConversationParticipant(Base):
    """Membership of a user in a conversation plus their read cursor.

    last_read_message_id never decreases; 0 means nothing read.
    """

    __tablename__ = "conversation_participants"
    __table_args__ = (
        Index("ix_conversation_participants_user_id", "user_id"),
    )

    conversation_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    last_read_message_id: Mapped[int] = mapped_column(
        BigIntId, nullable=False, default=0
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class Message(Base):
    """A message in a conversation.

    Messages are soft-deleted and never physically removed.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_id_id", "conversation_id", "id"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[int] = mapped_column(
        BigIntId,
        ForeignKey("users.id"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    attachment_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    attachment_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
