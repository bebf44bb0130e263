# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""User directory domain."""

from lms_messaging.domains.directory.service import UserDirectory, to_profile

__all__ = [
    "UserDirectory",
    "to_profile",
]
