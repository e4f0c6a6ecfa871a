"""
Periodic driver for sync cycles.
"""

from __future__ import annotations

import datetime
import logging
import time
from logging import Logger
from typing import Callable

from .sync import SyncStats
from .utils import SEPARATOR

__all__ = [
    "run_periodic",
]


def run_periodic(
    cycle: Callable[[], SyncStats],
    *,
    delay: datetime.timedelta,
    logger: Logger | None = None,
    max_cycles: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
    now: Callable[[], datetime.datetime] = datetime.datetime.now,
) -> int:
    """
    Run sync cycles separated by `delay`, forever unless `max_cycles` is
    given. A failed cycle is logged and the next one proceeds as scheduled,
    so the mirror recovers from transient errors on its own.

    Returns the number of cycles which failed.
    """

    logger = logger or logging.getLogger()
    cycle_count = 0
    failure_count = 0

    while max_cycles is None or cycle_count < max_cycles:
        logger.info("Syncing...")

        try:
            stats = cycle()
        except Exception as e:
            error = e
            failure_count += 1
        else:
            error = None

        cycle_count += 1
        next_time = (now() + delay).strftime(r"%Y-%m-%d %H:%M:%S")

        if error is None:
            logger.info(
                f"Synced! ({stats.create_count} created, {stats.update_count} updated, {stats.delete_count} deleted) next schedule: {next_time}"
            )
        else:
            logger.error(f"Sync error! err: ({error}). next schedule: {next_time}")

        logger.info(SEPARATOR)

        if max_cycles is not None and cycle_count >= max_cycles:
            break

        sleep(delay.total_seconds())

    return failure_count
