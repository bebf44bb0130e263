# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attachment upload endpoint.

The returned url and content_type are passed back as the attachment of
a send or create-conversation request.
"""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status

from lms_messaging.api.dependencies import get_attachment_store, require_auth
from lms_messaging.api.middleware.auth import CurrentUser
from lms_messaging.api.middleware.rate_limit import RATE_LIMIT_UPLOAD, limiter
from lms_messaging.domains.messaging import ValidationError
from lms_messaging.infrastructure.storage import LocalAttachmentStore
from lms_messaging.models.messaging import AttachmentUploadResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/attachments",
    response_model=AttachmentUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload attachment",
)
@limiter.limit(RATE_LIMIT_UPLOAD)
async def upload_attachment(
    request: Request,
    file: UploadFile = File(...),
    current_user: CurrentUser = Depends(require_auth),
    store: LocalAttachmentStore = Depends(get_attachment_store),
) -> AttachmentUploadResponse:
    """Store an uploaded file for use as a message attachment.

    Raises:
        HTTPException: 400 if the file is empty or too large.
    """
    # One byte past the limit is enough to reject oversize uploads
    data = await file.read(store.max_bytes + 1)

    try:
        result = store.save(data, file.filename, file.content_type)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    logger.info("User %s uploaded attachment %s", current_user.id, result.url)
    return result
