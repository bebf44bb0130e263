# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq broker for notification delivery jobs.

The API process only enqueues; workers started with
``dramatiq lms_messaging.infrastructure.background.tasks`` consume. Jobs
live in Redis so they survive API restarts. DRAMATIQ_TEST_MODE=true swaps
in a StubBroker that keeps queues in memory.
"""

import logging
import os
from typing import Any

import dramatiq
import redis
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker

from lms_messaging.core.config import get_settings

logger = logging.getLogger(__name__)


class Queues:
    """Queue names."""

    NOTIFICATIONS = "notifications"

    ALL = (NOTIFICATIONS,)


class Priority:
    """Actor priorities (lower runs first)."""

    HIGH = 1


def _use_stub() -> bool:
    return os.getenv("DRAMATIQ_TEST_MODE", "false").lower() == "true"


def _redact(url: str) -> str:
    return url.split("@")[-1]


class BrokerManager:
    """Owns the process-wide Dramatiq broker.

    Attributes:
        _broker: Broker installed with dramatiq.set_broker, or None.
    """

    def __init__(self) -> None:
        self._broker: dramatiq.Broker | None = None

    @property
    def is_initialized(self) -> bool:
        """Whether setup() has installed a broker."""
        return self._broker is not None

    @property
    def broker(self) -> dramatiq.Broker:
        """The installed broker.

        Raises:
            RuntimeError: If setup() has not run.
        """
        if self._broker is None:
            raise RuntimeError("Broker not initialized. Call setup() first.")
        return self._broker

    def setup(self) -> dramatiq.Broker:
        """Create and install the broker once; later calls return it."""
        if self._broker is not None:
            return self._broker

        if _use_stub():
            broker: dramatiq.Broker = StubBroker()
            broker.emit_after("process_boot")
            logger.info("Notification jobs use the in-memory stub broker")
        else:
            url = get_settings().redis.url
            broker = RedisBroker(url=url)
            logger.info("Notification jobs use Redis at %s", _redact(url))

        dramatiq.set_broker(broker)
        self._broker = broker
        return broker

    def shutdown(self) -> None:
        """Close the broker connection."""
        if self._broker is None:
            return
        self._broker.close()
        self._broker = None
        logger.info("Broker closed")

    def get_queue_stats(self) -> dict[str, Any]:
        """Report broker type and, for Redis, pending jobs per queue."""
        if self._broker is None:
            return {"status": "not_initialized"}

        if not isinstance(self._broker, RedisBroker):
            return {"broker_type": "stub", "status": "healthy"}

        try:
            client = redis.from_url(get_settings().redis.url)
            pending = {queue: client.llen(f"dramatiq:{queue}") for queue in Queues.ALL}
        except redis.RedisError as e:
            logger.warning("Queue stats unavailable: %s", e)
            return {"broker_type": "redis", "status": "error", "error": str(e)}

        return {"broker_type": "redis", "status": "healthy", "queues": pending}


_broker_manager: BrokerManager | None = None


def get_broker_manager() -> BrokerManager:
    """Get the process-wide broker manager."""
    global _broker_manager
    if _broker_manager is None:
        _broker_manager = BrokerManager()
    return _broker_manager


def setup_dramatiq() -> dramatiq.Broker:
    """Install the broker; actor modules call this at import."""
    return get_broker_manager().setup()


def get_broker() -> dramatiq.Broker:
    """Get the installed broker.

    Raises:
        RuntimeError: If the broker has not been set up.
    """
    return get_broker_manager().broker


def shutdown_dramatiq() -> None:
    """Close the broker at application shutdown."""
    global _broker_manager
    if _broker_manager is not None:
        _broker_manager.shutdown()
        _broker_manager = None
