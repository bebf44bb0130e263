# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

Dependencies are used to:
- Get database sessions
- Get the authenticated user
- Get service instances

Example:
    @router.get("/conversations")
    async def list_conversations(
        current_user: CurrentUser = Depends(require_auth),
        service: MessagingService = Depends(get_messaging_service),
    ):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms_messaging.api.middleware.auth import CurrentUser, get_current_user
from lms_messaging.core.config import get_settings
from lms_messaging.domains.messaging import MessagingService
from lms_messaging.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
    is_initialized,
)
from lms_messaging.infrastructure.storage import LocalAttachmentStore

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for one request.

    Yields:
        AsyncSession for the messaging database.

    Raises:
        HTTPException: If the database has not been initialized.
    """
    if not is_initialized():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized",
        )

    async with get_session() as session:
        yield session


# =========================================================================
# Authentication Dependencies
# =========================================================================


def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user.

    Args:
        request: HTTP request.

    Returns:
        CurrentUser.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


# =========================================================================
# Service Dependencies
# =========================================================================


def get_messaging_service(db: AsyncSession = Depends(get_db)) -> MessagingService:
    """Get MessagingService bound to the request session.

    Args:
        db: Database session.

    Returns:
        MessagingService.
    """
    return MessagingService(db, settings=get_settings().messaging)


def get_attachment_store() -> LocalAttachmentStore:
    """Get the attachment store.

    Returns:
        LocalAttachmentStore configured from settings.
    """
    return LocalAttachmentStore(get_settings().attachments)
