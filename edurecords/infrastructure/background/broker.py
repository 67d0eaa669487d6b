# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq broker for the records workers.

Two queues exist: "consolidation" for long, resumable consolidation runs
and "maintenance" for the periodic reopening window sweep. Redis keys are
namespaced (WORKER_NAMESPACE) so the records workers never consume
messages of another Dramatiq application sharing the same Redis.

DRAMATIQ_TEST_MODE=true swaps in a StubBroker; tests can then join the
queues instead of running workers.
"""

import logging
import os

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker

from edurecords.core.config import get_settings

logger = logging.getLogger(__name__)


class Queues:
    CONSOLIDATION = "consolidation"
    MAINTENANCE = "maintenance"

    ALL = (CONSOLIDATION, MAINTENANCE)


class Priority:
    """Message priority, lower runs first."""

    HIGH = 1
    NORMAL = 3


def _test_mode() -> bool:
    return os.getenv("DRAMATIQ_TEST_MODE", "false").lower() == "true"


class BrokerManager:
    """Create, install and close the process-wide broker."""

    def __init__(self) -> None:
        self._broker: dramatiq.Broker | None = None

    @property
    def broker(self) -> dramatiq.Broker:
        """The installed broker.

        Raises:
            RuntimeError: If setup() has not run.
        """
        if self._broker is None:
            raise RuntimeError("Dramatiq broker is not set up; call setup_dramatiq() first")
        return self._broker

    @property
    def is_initialized(self) -> bool:
        return self._broker is not None

    def setup(self) -> dramatiq.Broker:
        """Install the broker once and return it on every later call."""
        if self._broker is not None:
            return self._broker

        if _test_mode():
            broker: dramatiq.Broker = StubBroker()
            broker.emit_after("process_boot")
            logger.info("Dramatiq running on StubBroker")
        else:
            settings = get_settings()
            broker = RedisBroker(url=settings.redis.url, namespace=settings.worker.namespace)
            logger.info(
                "Dramatiq running on Redis %s:%s (namespace %s)",
                settings.redis.host,
                settings.redis.port,
                settings.worker.namespace,
            )

        for queue_name in Queues.ALL:
            broker.declare_queue(queue_name)

        dramatiq.set_broker(broker)
        self._broker = broker
        return broker

    def shutdown(self) -> None:
        if self._broker is None:
            return
        self._broker.close()
        self._broker = None
        logger.info("Dramatiq broker closed")


_broker_manager: BrokerManager | None = None


def get_broker_manager() -> BrokerManager:
    global _broker_manager
    if _broker_manager is None:
        _broker_manager = BrokerManager()
    return _broker_manager


def setup_dramatiq() -> dramatiq.Broker:
    """Install the broker. Runs at API startup and when workers import the actors."""
    return get_broker_manager().setup()


def get_broker() -> dramatiq.Broker:
    return get_broker_manager().broker


def shutdown_dramatiq() -> None:
    global _broker_manager
    if _broker_manager is not None:
        _broker_manager.shutdown()
        _broker_manager = None
