"""
Bounded pool of worker threads with per-task retry.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from logging import Logger
from typing import Callable, Iterable

from .exceptions import BackendError

__all__ = [
    "WorkerPool",
]

Task = Callable[[], None]


class WorkerPool:
    """
    Runs batches of tasks on a fixed number of threads. A task failing with
    {obj}`BackendError` is re-run up to `retry` more times; other exceptions
    aren't retried.

    Use as a context manager so threads are shut down when done.
    """

    workers: int
    retry: int

    _executor: ThreadPoolExecutor | None = None
    _logger: Logger

    def __init__(
        self, workers: int, *, retry: int = 0, logger: Logger | None = None
    ):
        assert workers >= 1
        assert retry >= 0

        self.workers = workers
        self.retry = retry
        self._logger = logger or logging.getLogger()

    def __enter__(self) -> WorkerPool:
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="gdrive-mirror"
        )
        return self

    def __exit__(self, *args: object):
        assert self._executor
        self._executor.shutdown(wait=True)
        self._executor = None

    def run(self, tasks: Iterable[Task]):
        """
        Run tasks and wait for all of them to complete, then raise the first
        error encountered, if any.
        """
        assert self._executor, "WorkerPool must be entered before use"

        futures: list[Future[None]] = [
            self._executor.submit(self._run_task, task) for task in tasks
        ]
        error: BaseException | None = None

        for future in as_completed(futures):
            exc = future.exception()
            if exc is not None and error is None:
                error = exc

        if error is not None:
            raise error

    def _run_task(self, task: Task):
        attempt = 0
        while True:
            try:
                return task()
            except BackendError as e:
                if attempt >= self.retry:
                    raise
                attempt += 1
                self._logger.debug(
                    f"Retrying task after backend error ({attempt}/{self.retry}): {e}"
                )
