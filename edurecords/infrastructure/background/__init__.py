# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task infrastructure.

Dramatiq actors over Redis handle the periodic reopening window sweep
and resumable consolidation runs. APScheduler sends the periodic
messages from the API process.

Running Workers:
    dramatiq edurecords.infrastructure.background.tasks --processes 2 --threads 4

Actors are imported from the tasks package, not re-exported here, so
importing this package does not bind a broker.
"""

from edurecords.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    get_broker,
    get_broker_manager,
    setup_dramatiq,
    shutdown_dramatiq,
)
from edurecords.infrastructure.background.scheduler import (
    DramatiqScheduler,
    ScheduledJob,
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "BrokerManager",
    "Priority",
    "Queues",
    "get_broker",
    "get_broker_manager",
    "setup_dramatiq",
    "shutdown_dramatiq",
    "DramatiqScheduler",
    "ScheduledJob",
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
]
