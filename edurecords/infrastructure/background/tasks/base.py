# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Run the async services from Dramatiq worker threads.

An asyncpg engine only works on the loop that created it. Each worker
thread therefore owns one loop for its whole life, and whenever that
loop has to be recreated the thread's engine is dropped too (see
get_worker_session).
"""

import asyncio
import logging
import threading
from typing import Any, Coroutine, TypeVar

from edurecords.infrastructure.database.connection import clear_worker_connections

logger = logging.getLogger(__name__)

T = TypeVar("T")

_local = threading.local()


def _thread_loop() -> asyncio.AbstractEventLoop:
    loop: asyncio.AbstractEventLoop | None = getattr(_local, "loop", None)
    if loop is not None and not loop.is_closed():
        return loop

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _local.loop = loop
    # The old engine belonged to the previous loop
    clear_worker_connections()
    logger.debug("Worker thread %s got a new event loop", threading.current_thread().name)
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Block the worker thread until `coro` completes on its loop."""
    return _thread_loop().run_until_complete(coro)
