# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq actors for the LMS messaging service.

Importing this package registers every actor with the broker.

Running Workers:
    dramatiq lms_messaging.infrastructure.background.tasks --processes 2 --threads 4
"""

from lms_messaging.infrastructure.background.tasks.notifications import (
    deliver_message_notification,
)

__all__ = [
    "deliver_message_notification",
]
