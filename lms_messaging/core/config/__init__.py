# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the LMS messaging service.

Example:
    >>> from lms_messaging.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from lms_messaging.core.config.settings import (
    APISettings,
    AttachmentSettings,
    CORSSettings,
    DatabaseSettings,
    JWTSettings,
    MessagingSettings,
    RateLimitSettings,
    RedisSettings,
    Settings,
    WorkerSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "RedisSettings",
    "JWTSettings",
    "RateLimitSettings",
    "CORSSettings",
    "APISettings",
    "WorkerSettings",
    "MessagingSettings",
    "AttachmentSettings",
]
