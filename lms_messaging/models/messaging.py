# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic models for conversation and message API.

These models are returned by the messaging service and serialized
directly by the v1 routes.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Shared
# ============================================================================


class AttachmentRef(BaseModel):
    """Opaque reference to a stored attachment.

    The messaging core never inspects attachment bytes; it only stores the
    reference and its content type.
    """

    url: str = Field(min_length=1, max_length=500, description="Attachment URL")
    content_type: str | None = Field(
        default=None, max_length=100, description="MIME type of the attachment"
    )


class UserProfile(BaseModel):
    """Minimal user profile from the user directory."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="User ID")
    full_name: str = Field(description="Display name")
    email: str = Field(description="Email address")
    role: str = Field(description="student, faculty or admin")
    campus: str | None = Field(default=None, description="Campus")
    profile_image: str | None = Field(default=None, description="Avatar URL")


# ============================================================================
# Request Models
# ============================================================================


class CreateConversationRequest(BaseModel):
    """Request to start a conversation or reuse an existing direct one."""

    participant_ids: list[int] = Field(description="Other participants; the caller is added")
    kind: Literal["direct", "group"] = Field(default="direct", description="Conversation kind")
    title: str | None = Field(default=None, max_length=255, description="Optional title")
    initial_message: str | None = Field(default=None, description="Optional first message")
    attachment: AttachmentRef | None = Field(default=None, description="Optional first attachment")


class SendMessageRequest(BaseModel):
    """Request to append a message to a conversation."""

    content: str = Field(default="", description="Message text; may be empty with an attachment")
    attachment: AttachmentRef | None = Field(default=None, description="Optional attachment")


# ============================================================================
# Response Models
# ============================================================================


class MessageResponse(BaseModel):
    """A message enriched with sender display data and read receipts."""

    id: int
    conversation_id: int
    sender_id: int
    sender_name: str | None = None
    sender_profile_image: str | None = None
    sender_campus: str | None = None
    content: str
    attachment_url: str | None = None
    attachment_type: str | None = None
    created_at: datetime
    read_by: list[int] = Field(default_factory=list, description="Users who have read it")
    read_by_all: bool = Field(default=False, description="Read by every other participant")


class MessageListResponse(BaseModel):
    """Messages of a conversation, oldest first."""

    items: list[MessageResponse]
    last_read_message_id: int = Field(description="Caller's read cursor after the fetch")


class LastMessage(BaseModel):
    """Preview of the newest message of a conversation."""

    id: int
    content: str
    sender_id: int
    sender_name: str | None = None
    sender_profile_image: str | None = None
    attachment_type: str | None = None
    created_at: datetime


class ConversationSummary(BaseModel):
    """One row of the caller's conversation list."""

    id: int
    title: str | None = None
    kind: Literal["direct", "group"]
    unread_count: int = 0
    last_message: LastMessage | None = None
    other_participant: UserProfile | None = None
    created_at: datetime
    updated_at: datetime


class ConversationListResponse(BaseModel):
    """Caller's conversations, most recently active first."""

    items: list[ConversationSummary]
    total: int


class CreateConversationResponse(BaseModel):
    """Result of conversation resolution."""

    conversation_id: int
    already_exists: bool
    message: MessageResponse | None = Field(
        default=None, description="Initial message, when one was supplied"
    )


class MarkReadResponse(BaseModel):
    """Read cursor after an explicit mark-read."""

    conversation_id: int
    last_read_message_id: int


class UserSearchResponse(BaseModel):
    """Users matching a search query."""

    items: list[UserProfile]


class AttachmentUploadResponse(BaseModel):
    """Stored attachment details."""

    url: str
    content_type: str | None = None
    file_name: str
    size: int
