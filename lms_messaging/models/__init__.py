# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic request and response models."""

from lms_messaging.models.messaging import (
    AttachmentRef,
    AttachmentUploadResponse,
    ConversationListResponse,
    ConversationSummary,
    CreateConversationRequest,
    CreateConversationResponse,
    LastMessage,
    MarkReadResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
    UserProfile,
    UserSearchResponse,
)

__all__ = [
    "AttachmentRef",
    "AttachmentUploadResponse",
    "ConversationListResponse",
    "ConversationSummary",
    "CreateConversationRequest",
    "CreateConversationResponse",
    "LastMessage",
    "MarkReadResponse",
    "MessageListResponse",
    "MessageResponse",
    "SendMessageRequest",
    "UserProfile",
    "UserSearchResponse",
]
