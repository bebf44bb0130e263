# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial messaging schema.

Revision ID: 001_initial
Revises: None
Create Date: 2025-01-15
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create users, conversation, message and notification tables."""
    # =========================================================================
    # USER DIRECTORY TABLES
    # =========================================================================

    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("campus", sa.String(100), nullable=True),
        sa.Column("profile_image", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "user_settings",
        sa.Column("user_id", sa.BigInteger),
        sa.Column("profile_picture", sa.String(500), nullable=True),
        sa.Column(
            "message_notifications", sa.Boolean, nullable=False, server_default=sa.true()
        ),
        sa.PrimaryKeyConstraint("user_id", name="pk_user_settings"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_user_settings_user_id_users",
            ondelete="CASCADE",
        ),
    )

    # =========================================================================
    # MESSAGING TABLES
    # =========================================================================

    op.create_table(
        "conversations",
        sa.Column("id", sa.BigInteger, autoincrement=True),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("direct_key", sa.String(64), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_conversations"),
        sa.UniqueConstraint("direct_key", name="uq_conversations_direct_key"),
        sa.CheckConstraint(
            "kind IN ('direct', 'group')", name="ck_conversations_valid_kind"
        ),
        sa.CheckConstraint(
            "(kind = 'direct' AND direct_key IS NOT NULL) "
            "OR (kind = 'group' AND direct_key IS NULL)",
            name="ck_conversations_direct_key_matches_kind",
        ),
    )

    op.create_table(
        "conversation_participants",
        sa.Column("conversation_id", sa.BigInteger, nullable=False),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column(
            "last_read_message_id", sa.BigInteger, nullable=False, server_default="0"
        ),
        _timestamp("joined_at"),
        sa.PrimaryKeyConstraint(
            "conversation_id", "user_id", name="pk_conversation_participants"
        ),
        sa.ForeignKeyConstraint(
            ["conversation_id"],
            ["conversations.id"],
            name="fk_conversation_participants_conversation_id_conversations",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_conversation_participants_user_id_users",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_conversation_participants_user_id", "conversation_participants", ["user_id"]
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.BigInteger, autoincrement=True),
        sa.Column("conversation_id", sa.BigInteger, nullable=False),
        sa.Column("sender_id", sa.BigInteger, nullable=False),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("attachment_url", sa.String(500), nullable=True),
        sa.Column("attachment_type", sa.String(100), nullable=True),
        _timestamp("created_at"),
        sa.Column("deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id", name="pk_messages"),
        sa.ForeignKeyConstraint(
            ["conversation_id"],
            ["conversations.id"],
            name="fk_messages_conversation_id_conversations",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["sender_id"], ["users.id"], name="fk_messages_sender_id_users"
        ),
    )
    op.create_index(
        "ix_messages_conversation_id_id", "messages", ["conversation_id", "id"]
    )

    # =========================================================================
    # NOTIFICATION TABLES
    # =========================================================================

    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column("notification_type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("related_id", sa.BigInteger, nullable=True),
        sa.Column(
            "data",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_notifications_user_id_users",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index(
        "ix_notifications_notification_type", "notifications", ["notification_type"]
    )

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.BigInteger, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column("notification_type", sa.String(50), nullable=False),
        sa.Column("is_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("in_app", sa.Boolean, nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_notification_preferences"),
        sa.UniqueConstraint(
            "user_id", "notification_type", name="unique_user_notification_type"
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_notification_preferences_user_id_users",
            ondelete="CASCADE",
        ),
    )


def downgrade() -> None:
    """Drop all messaging tables."""
    op.drop_table("notification_preferences")
    op.drop_index("ix_notifications_notification_type", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_messages_conversation_id_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index(
        "ix_conversation_participants_user_id", table_name="conversation_participants"
    )
    op.drop_table("conversation_participants")
    op.drop_table("conversations")
    op.drop_table("user_settings")
    op.drop_table("users")
