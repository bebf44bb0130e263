"""LMS Messaging Service.

Conversation and message delivery core for the school learning-management
system: direct/group conversations, ordered messages, read cursors,
unread counts, read receipts, and in-app notifications on send.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
