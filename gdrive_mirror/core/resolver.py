"""
Resolution of local paths to remote objects, creating them as needed.
"""

from __future__ import annotations

import logging
import os
import stat
import threading
from dataclasses import dataclass
from logging import Logger

from .backend import Backend
from .store import MetadataStore, TrackedObject
from .utils import display_path, format_size

__all__ = [
    "Resolution",
    "ObjectResolver",
]


@dataclass(frozen=True, kw_only=True)
class Resolution:
    """
    Outcome of resolving a path.
    """

    obj: TrackedObject | None
    """
    Object for the path, or the blocking ancestor if `locked` is set.
    """

    existed: bool = False
    """
    Object was already tracked; nothing was created.
    """

    locked: bool = False
    """
    Path or one of its ancestors is being created by another worker; retry
    in a later pass.
    """


class ObjectResolver:
    """
    Maps local paths to remote objects, lazily creating the object for a path
    and any missing ancestors.

    A placeholder entry is inserted into the store before invoking the
    backend. Only the worker whose insert succeeds creates the remote object;
    any other worker reaching the same path observes the placeholder and
    reports it as locked. This guarantees at most one remote creation per
    path regardless of how tasks are scheduled.
    """

    create_count: int
    """
    Number of remote objects created by this resolver.
    """

    _store: MetadataStore
    _backend: Backend
    _logger: Logger
    _count_lock: threading.Lock

    def __init__(
        self,
        store: MetadataStore,
        backend: Backend,
        *,
        logger: Logger | None = None,
    ):
        self._store = store
        self._backend = backend
        self._logger = logger or logging.getLogger()
        self._count_lock = threading.Lock()
        self.create_count = 0

    def resolve(self, path: str) -> Resolution:
        """
        Get object for path, creating it along with any missing ancestors.
        Errors from stat or the backend are raised.
        """

        obj = self._store.lookup(path)
        if obj is not None:
            return Resolution(
                obj=obj, existed=True, locked=self._store.is_locked(obj)
            )

        parent_path = os.path.dirname(path)
        if parent_path == path:
            raise ValueError(
                f"Path '{path}' is not within sync root '{self._store.root}'"
            )

        parent = self._store.lookup(parent_path)
        if parent is None:
            parent_res = self.resolve(parent_path)

            # parent showed up or is in flight from another worker
            if parent_res.existed or parent_res.locked:
                return Resolution(obj=parent_res.obj, locked=True)

            parent = parent_res.obj
            assert parent is not None

        if self._store.is_locked(parent):
            return Resolution(obj=parent, locked=True)

        st = os.stat(path)
        is_dir = stat.S_ISDIR(st.st_mode)

        placeholder = TrackedObject(
            remote_id="",
            parent_remote_id=parent.remote_id,
            last_mod=0 if is_dir else int(st.st_mtime),
            size=st.st_size,
        )

        if not self._store.try_insert(path, placeholder):
            return Resolution(obj=parent, locked=True)

        try:
            if is_dir:
                remote_id = self._backend.create_directory(
                    path, parent.remote_id
                )
            else:
                remote_id = self._backend.upload_file(path, parent.remote_id)
        except Exception:
            # roll back so a later attempt starts clean
            self._store.remove(path)
            raise

        def complete(o: TrackedObject):
            o.remote_id = remote_id

        obj = self._store.mutate(placeholder, complete)

        with self._count_lock:
            self.create_count += 1

        op = "mkdir" if is_dir else "created"
        self._logger.info(
            f"{op}: {display_path(path, self._store.root)} ({format_size(st.st_size)})"
        )

        return Resolution(obj=obj)
