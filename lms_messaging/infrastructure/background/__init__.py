# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task infrastructure for the LMS messaging service.

Quick Start:
    # Setup broker (call once at startup)
    from lms_messaging.infrastructure.background import setup_dramatiq
    setup_dramatiq()

Running Workers:
    dramatiq lms_messaging.infrastructure.background.tasks --processes 2 --threads 4
"""

from lms_messaging.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    get_broker,
    get_broker_manager,
    setup_dramatiq,
    shutdown_dramatiq,
)

__all__ = [
    "BrokerManager",
    "Priority",
    "Queues",
    "get_broker",
    "get_broker_manager",
    "setup_dramatiq",
    "shutdown_dramatiq",
]
