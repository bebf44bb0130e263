# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Messaging error taxonomy.

Validation and authorization errors go straight back to the caller and
are never retried. TransientStoreError is the only retryable error.
"""


class MessagingError(Exception):
    """Base exception for messaging service errors."""

    pass


class ValidationError(MessagingError):
    """Raised when a request is malformed (empty participants, empty message, bad Direct set)."""

    pass


class AuthorizationError(MessagingError):
    """Raised when the caller is not a participant of the conversation."""

    pass


class NotFoundError(MessagingError):
    """Raised when a conversation or message does not exist."""

    pass


class ConflictError(MessagingError):
    """Raised when a uniqueness conflict cannot be resolved to an existing row."""

    pass


class TransientStoreError(MessagingError):
    """Raised when the store is unavailable or timed out. Safe to retry."""

    pass
