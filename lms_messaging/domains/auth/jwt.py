# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""JWT token management utilities.

This module validates access tokens using python-jose. Tokens are issued
by the LMS auth service; the subject claim carries the numeric user id.
create_access_token exists for service-to-service calls and tests.

Example:
    >>> from lms_messaging.core.config import get_settings
    >>> jwt_manager = JWTManager(get_settings().jwt)
    >>> token = jwt_manager.create_access_token(user_id=42, role="student")
    >>> claims = jwt_manager.decode_token(token)
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Literal

from jose import ExpiredSignatureError, JWTError as JoseJWTError, jwt
from pydantic import BaseModel

from lms_messaging.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """JWT token payload structure.

    Attributes:
        sub: Subject (numeric user ID as a string).
        type: Token type.
        role: LMS role (student, faculty, admin).
        exp: Expiration timestamp.
        iat: Issued at timestamp.
        jti: JWT ID for token tracking.
    """

    sub: str
    type: Literal["access"] = "access"
    role: str | None = None
    exp: int
    iat: int | None = None
    jti: str | None = None

    @property
    def user_id(self) -> int:
        """Numeric user id from the subject claim."""
        return int(self.sub)


class JWTError(Exception):
    """Base exception for JWT operations."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid."""

    pass


class JWTManager:
    """JWT token creation and validation manager.

    Attributes:
        _settings: JWT configuration settings.
    """

    def __init__(self, settings: JWTSettings) -> None:
        """Initialize the JWT manager.

        Args:
            settings: JWT configuration settings.
        """
        self._settings = settings

    def create_access_token(
        self,
        user_id: int,
        role: str | None = None,
        expires_minutes: int | None = None,
    ) -> str:
        """Create an access token.

        Args:
            user_id: User identifier.
            role: LMS role.
            expires_minutes: Lifetime override.

        Returns:
            JWT access token string.
        """
        now = datetime.now(timezone.utc)
        lifetime = expires_minutes or self._settings.access_token_expire_minutes
        payload = {
            "sub": str(user_id),
            "type": "access",
            "role": role,
            "exp": int((now + timedelta(minutes=lifetime)).timestamp()),
            "iat": int(now.timestamp()),
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(
            payload,
            self._settings.secret_key.get_secret_value(),
            algorithm=self._settings.algorithm,
        )

    def decode_token(self, token: str) -> TokenPayload:
        """Decode and validate an access token.

        Args:
            token: JWT token string.

        Returns:
            TokenPayload with decoded claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the token is invalid, of the wrong type,
                or its subject is not a numeric user id.
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key.get_secret_value(),
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JoseJWTError as e:
            raise InvalidTokenError(f"Invalid token: {str(e)}") from e

        token_type = payload.get("type", "access")
        if token_type != "access":
            raise InvalidTokenError(f"Expected access token, got {token_type}")

        sub = str(payload.get("sub", ""))
        if not (sub.isascii() and sub.isdecimal()):
            raise InvalidTokenError("Token subject is not a user id")

        if "exp" not in payload:
            raise InvalidTokenError("Token has no expiration")

        return TokenPayload(
            sub=sub,
            type=token_type,
            role=payload.get("role"),
            exp=payload["exp"],
            iat=payload.get("iat"),
            jti=payload.get("jti"),
        )
