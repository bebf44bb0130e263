# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Messaging API endpoints.

This module provides endpoints for conversations and messages:
- GET /conversations - List the caller's conversations
- POST /conversations - Start a conversation or reuse a direct one
- GET /conversations/{id}/messages - Read messages (marks them read)
- POST /conversations/{id}/messages - Send a message
- POST /conversations/{id}/read - Mark the conversation read
- DELETE /conversations/{id}/messages/{message_id} - Delete own message
- GET /users - Search users to message

Example:
    GET /api/v1/messages/conversations
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from lms_messaging.api.dependencies import get_messaging_service, require_auth
from lms_messaging.api.middleware.auth import CurrentUser
from lms_messaging.api.middleware.rate_limit import RATE_LIMIT_SEND_MESSAGE, limiter
from lms_messaging.domains.messaging import (
    AuthorizationError,
    ConflictError,
    MessagingError,
    MessagingService,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from lms_messaging.models.messaging import (
    ConversationListResponse,
    CreateConversationRequest,
    CreateConversationResponse,
    MarkReadResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
    UserSearchResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_STATUS: list[tuple[type[MessagingError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (TransientStoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def _http_error(error: MessagingError) -> HTTPException:
    """Map a messaging error to its HTTP status.

    Args:
        error: Domain error raised by the service.

    Returns:
        HTTPException to raise.
    """
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(error, error_type):
            headers = {"Retry-After": "5"} if status_code == 503 else None
            return HTTPException(status_code=status_code, detail=str(error), headers=headers)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


# ============================================================================
# Conversations
# ============================================================================


@router.get(
    "/conversations",
    response_model=ConversationListResponse,
    summary="List conversations",
    description="List the caller's conversations, most recently active first.",
)
async def list_conversations(
    current_user: CurrentUser = Depends(require_auth),
    service: MessagingService = Depends(get_messaging_service),
) -> ConversationListResponse:
    """List conversations with unread counts and last messages."""
    try:
        return await service.list_conversations_for_user(current_user.id)
    except MessagingError as e:
        raise _http_error(e) from e


@router.post(
    "/conversations",
    response_model=CreateConversationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start conversation",
    description=(
        "Create a conversation. A direct conversation with the same user is "
        "reused and returned with 200 instead of 201."
    ),
)
async def create_conversation(
    data: CreateConversationRequest,
    response: Response,
    current_user: CurrentUser = Depends(require_auth),
    service: MessagingService = Depends(get_messaging_service),
) -> CreateConversationResponse:
    """Start a conversation or reuse the existing direct one.

    Args:
        data: Conversation creation request.
        response: Response used to downgrade the status for reuse.
        current_user: Authenticated user; added to the participants.
        service: Messaging service.

    Returns:
        Conversation id, already_exists flag and the initial message.

    Raises:
        HTTPException: 400 for invalid participants or message.
    """
    logger.info(
        "Creating %s conversation by user %s with %d participants",
        data.kind,
        current_user.id,
        len(data.participant_ids),
    )

    try:
        result = await service.create_conversation(
            current_user.id,
            data.participant_ids,
            kind=data.kind,
            title=data.title,
            initial_message=data.initial_message,
            attachment=data.attachment,
        )
    except MessagingError as e:
        raise _http_error(e) from e

    if result.already_exists:
        response.status_code = status.HTTP_200_OK
    return result


# ============================================================================
# Messages
# ============================================================================


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=MessageListResponse,
    summary="Get messages",
    description="Get messages oldest first. Fetching marks them read for the caller.",
)
async def list_messages(
    conversation_id: int,
    current_user: CurrentUser = Depends(require_auth),
    service: MessagingService = Depends(get_messaging_service),
) -> MessageListResponse:
    """Get messages with read receipts and advance the caller's cursor."""
    try:
        return await service.list_messages(conversation_id, current_user.id)
    except MessagingError as e:
        raise _http_error(e) from e


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
)
@limiter.limit(RATE_LIMIT_SEND_MESSAGE)
async def send_message(
    request: Request,
    conversation_id: int,
    data: SendMessageRequest,
    current_user: CurrentUser = Depends(require_auth),
    service: MessagingService = Depends(get_messaging_service),
) -> MessageResponse:
    """Send a message to a conversation.

    Args:
        request: HTTP request (used by the rate limiter).
        conversation_id: Target conversation.
        data: Message content and optional attachment.
        current_user: Authenticated sender.
        service: Messaging service.

    Returns:
        The stored message.

    Raises:
        HTTPException: 400 empty/too long, 403 not a participant,
            404 unknown conversation, 503 store unavailable.
    """
    try:
        return await service.send_message(
            conversation_id,
            current_user.id,
            data.content,
            attachment=data.attachment,
        )
    except MessagingError as e:
        raise _http_error(e) from e


@router.post(
    "/conversations/{conversation_id}/read",
    response_model=MarkReadResponse,
    summary="Mark conversation read",
)
async def mark_read(
    conversation_id: int,
    current_user: CurrentUser = Depends(require_auth),
    service: MessagingService = Depends(get_messaging_service),
) -> MarkReadResponse:
    """Mark everything in the conversation read without fetching it."""
    try:
        return await service.mark_read(conversation_id, current_user.id)
    except MessagingError as e:
        raise _http_error(e) from e


@router.delete(
    "/conversations/{conversation_id}/messages/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete message",
    description="Soft-delete a message. Only the sender may delete it.",
)
async def delete_message(
    conversation_id: int,
    message_id: int,
    current_user: CurrentUser = Depends(require_auth),
    service: MessagingService = Depends(get_messaging_service),
) -> Response:
    """Soft-delete one of the caller's messages."""
    try:
        await service.delete_message(conversation_id, message_id, current_user.id)
    except MessagingError as e:
        raise _http_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Users
# ============================================================================


@router.get(
    "/users",
    response_model=UserSearchResponse,
    summary="Search users",
    description="Find users by name or email to start a conversation with.",
)
async def search_users(
    query: str | None = Query(default=None, max_length=100, description="Name or email"),
    current_user: CurrentUser = Depends(require_auth),
    service: MessagingService = Depends(get_messaging_service),
) -> UserSearchResponse:
    """Search the user directory, excluding the caller."""
    try:
        return await service.search_users(current_user.id, query)
    except MessagingError as e:
        raise _http_error(e) from e
