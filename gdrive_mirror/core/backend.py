"""
Interface to the remote object store.

All remote effects go through {obj}`Backend`; the sync engine never talks to
Google Drive directly. {obj}`GdriveBackend` drives the
[gdrive](https://github.com/glotlabs/gdrive) CLI while {obj}`SimulatedBackend`
performs no I/O, for load testing.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from logging import Logger

from .exceptions import BackendError
from .store import ROOT_MARKER

__all__ = [
    "Backend",
    "GdriveBackend",
    "SimulatedBackend",
]


class Backend(ABC):
    """
    Operations on the remote store. Each call blocks until the operation
    completes and raises {obj}`BackendError` upon failure.
    """

    @abstractmethod
    def create_directory(self, path: str, parent_id: str) -> str:
        """
        Create folder named after local `path` under the given parent,
        returning its remote id.
        """
        ...

    @abstractmethod
    def upload_file(self, path: str, parent_id: str) -> str:
        """
        Upload local file under the given parent, returning its remote id.
        """
        ...

    @abstractmethod
    def update_file(self, remote_id: str, path: str):
        """
        Replace content of remote file with that of local `path`.
        """
        ...

    @abstractmethod
    def delete_recursive(self, remote_id: str):
        """
        Delete remote object along with any children.
        """
        ...

    @abstractmethod
    def switch_account(self, account: str):
        """
        Select the account used by subsequent operations.
        """
        ...


class GdriveBackend(Backend):
    """
    Backend invoking the `gdrive` CLI. File operations are run from the
    folder containing the target so `gdrive` names remote objects after the
    local basename.
    """

    executable: str
    _logger: Logger

    def __init__(self, executable: str = "gdrive", *, logger: Logger | None = None):
        self.executable = executable
        self._logger = logger or logging.getLogger()

    def create_directory(self, path: str, parent_id: str) -> str:
        return self._create("mkdir", path, parent_id)

    def upload_file(self, path: str, parent_id: str) -> str:
        return self._create("upload", path, parent_id)

    def update_file(self, remote_id: str, path: str):
        folder, name = os.path.split(path)
        self._exec(["files", "update", remote_id, name], cwd=folder)

    def delete_recursive(self, remote_id: str):
        self._exec(["files", "delete", remote_id, "--recursive"])

    def switch_account(self, account: str):
        self._exec(["account", "switch", account])

    def _create(self, op: str, path: str, parent_id: str) -> str:
        folder, name = os.path.split(path)

        args = ["files", op, name]
        if parent_id != ROOT_MARKER:
            args += ["--parent", parent_id]
        args.append("--print-only-id")

        remote_id = self._exec(args, cwd=folder)
        if not remote_id:
            raise BackendError(
                f"gdrive {op} returned no id for '{path}'",
                command=[self.executable] + args,
            )

        return remote_id

    def _exec(self, args: list[str], *, cwd: str | None = None) -> str:
        """
        Run gdrive and return its stripped output, raising with the combined
        stdout/stderr upon failure.
        """
        cmd = [self.executable] + args
        self._logger.debug(f"Running: {' '.join(cmd)} (cwd={cwd})")

        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise BackendError(str(e), command=cmd) from e

        output = result.stdout.strip()
        if result.returncode != 0:
            raise BackendError(output, command=cmd)

        return output


class SimulatedBackend(Backend):
    """
    Backend which sleeps instead of performing remote operations, returning
    a fixed id for every created object. Keeps a count of operations
    performed.
    """

    OBJECT_ID = "0"

    delay: float
    """
    Seconds to sleep per operation.
    """

    op_counts: dict[str, int]

    def __init__(self, delay_ms: int = 0):
        self.delay = delay_ms / 1000
        self.op_counts = dict()
        self._lock = threading.Lock()

    def create_directory(self, path: str, parent_id: str) -> str:
        self._op("mkdir")
        return self.OBJECT_ID

    def upload_file(self, path: str, parent_id: str) -> str:
        self._op("upload")
        return self.OBJECT_ID

    def update_file(self, remote_id: str, path: str):
        self._op("update")

    def delete_recursive(self, remote_id: str):
        self._op("delete")

    def switch_account(self, account: str):
        self._op("switch")

    def _op(self, name: str):
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.op_counts[name] = self.op_counts.get(name, 0) + 1
