"""
Test periodic sync driver.
"""

import datetime
import logging

from pytest import LogCaptureFixture

from gdrive_mirror import BackendError, SyncStats, run_periodic

NOW = datetime.datetime(2024, 1, 2, 3, 4, 5)


class FakeCycle:
    """
    Cycle which fails on the given cycle numbers, counting from 1.
    """

    def __init__(self, failures: set[int] | None = None):
        self.failures = failures or set()
        self.count = 0

    def __call__(self) -> SyncStats:
        self.count += 1
        if self.count in self.failures:
            raise BackendError("Error: quota exceeded")
        return SyncStats(create_count=self.count, update_count=2)


def test_run_periodic(caplog: LogCaptureFixture, logger: logging.Logger):
    cycle = FakeCycle(failures={2})
    sleeps: list[float] = []

    with caplog.at_level(logging.INFO, logger=logger.name):
        failure_count = run_periodic(
            cycle,
            delay=datetime.timedelta(minutes=5),
            logger=logger,
            max_cycles=3,
            sleep=sleeps.append,
            now=lambda: NOW,
        )

    # failed cycle didn't stop the schedule
    assert cycle.count == 3
    assert failure_count == 1

    # no sleep after the last cycle
    assert sleeps == [300.0, 300.0]

    messages = caplog.messages
    assert messages.count("Syncing...") == 3
    assert (
        "Synced! (1 created, 2 updated, 0 deleted) next schedule: 2024-01-02 03:09:05"
        in messages
    )
    assert (
        "Sync error! err: (Error: quota exceeded). next schedule: 2024-01-02 03:09:05"
        in messages
    )
    assert (
        "Synced! (3 created, 2 updated, 0 deleted) next schedule: 2024-01-02 03:09:05"
        in messages
    )


def test_run_periodic_zero_delay(logger: logging.Logger):
    cycle = FakeCycle()
    sleeps: list[float] = []

    failure_count = run_periodic(
        cycle,
        delay=datetime.timedelta(0),
        logger=logger,
        max_cycles=2,
        sleep=sleeps.append,
    )

    assert failure_count == 0
    assert cycle.count == 2
    assert sleeps == [0.0]


def test_run_periodic_unexpected_error(logger: logging.Logger):
    """
    Errors other than backend failures are also survived.
    """

    def cycle() -> SyncStats:
        raise FileNotFoundError("sync root vanished")

    failure_count = run_periodic(
        cycle,
        delay=datetime.timedelta(seconds=1),
        logger=logger,
        max_cycles=2,
        sleep=lambda _: None,
    )

    assert failure_count == 2
