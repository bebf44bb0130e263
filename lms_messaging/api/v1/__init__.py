# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    messages: Conversation, message, read-state and user search endpoints.
    attachments: Attachment upload endpoint.
"""

from fastapi import APIRouter

from lms_messaging.api.v1 import attachments, messages

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(messages.router, prefix="/messages", tags=["Messages"])
router.include_router(attachments.router, prefix="/messages", tags=["Attachments"])
