"""
Synchronization of a local tree to the remote store.

A cycle consists of the following phases:

1. Enumerate the local tree
2. Resolve every entry on the worker pool, creating missing remote objects
and updating modified files; entries blocked on an ancestor's in-flight
creation are retried in another pass until none remain
3. Delete remote objects whose local path no longer exists
4. Persist the metadata store

There is no dependency graph between entries: parent-before-child ordering
falls out of {obj}`ObjectResolver` recursing into ancestors and reporting
paths blocked by another worker's placeholder as locked. Each pass completes
at least the shallowest blocked level, so the number of passes is bounded
by the depth of the tree.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from functools import partial
from logging import Logger

from .backend import Backend
from .exceptions import BackendError
from .pool import WorkerPool
from .resolver import ObjectResolver
from .store import MetadataStore, TrackedObject
from .utils import SEPARATOR, display_path, format_size
from .walk import WalkEntry, walk_tree

__all__ = [
    "SyncStats",
    "SyncPlan",
    "Synchronizer",
    "is_modified",
]


@dataclass(kw_only=True)
class SyncStats:
    """
    Encapsulates statistics for a sync cycle.
    """

    entry_count: int = 0
    """
    Number of local entries enumerated, including the root.
    """

    pass_count: int = 0
    """
    Number of resolve passes needed to converge.
    """

    create_count: int = 0
    update_count: int = 0
    delete_count: int = 0


@dataclass(kw_only=True)
class SyncPlan:
    """
    Changes which a sync cycle would make, as determined without contacting
    the backend.
    """

    creates: list[WalkEntry] = field(default_factory=list)
    updates: list[WalkEntry] = field(default_factory=list)
    deletes: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.creates or self.updates or self.deletes)


def is_modified(entry: WalkEntry, obj: TrackedObject) -> bool:
    """
    Check whether a tracked file needs to be re-uploaded. Requires both a
    newer mtime and a different size, so clock skew alone doesn't trigger an
    upload.

    ```{note}
    An edit which keeps the file size unchanged is not detected.
    ```
    """
    if entry.is_dir:
        return False
    return entry.mtime > obj.last_mod and entry.size != obj.size


class Synchronizer:
    """
    Drives sync cycles of the store's root folder against a backend.
    """

    _store: MetadataStore
    _backend: Backend
    _workers: int
    _retry: int
    _logger: Logger

    def __init__(
        self,
        store: MetadataStore,
        backend: Backend,
        *,
        workers: int = 1,
        retry: int = 0,
        logger: Logger | None = None,
    ):
        self._store = store
        self._backend = backend
        self._workers = workers
        self._retry = retry
        self._logger = logger or logging.getLogger()

    @property
    def root(self) -> str:
        return self._store.root

    def sync(self) -> SyncStats:
        """
        Run a full sync cycle. Upon any error the cycle is aborted before
        persisting the store, and the error is raised.
        """

        stats = SyncStats()
        entries = walk_tree(self.root)
        stats.entry_count = len(entries)

        resolver = ObjectResolver(
            self._store, self._backend, logger=self._logger
        )
        stats_lock = threading.Lock()

        with WorkerPool(
            self._workers, retry=self._retry, logger=self._logger
        ) as pool:
            pending = entries
            while len(pending):
                pending = self._resolve_pass(
                    pool, resolver, pending, stats, stats_lock
                )
                stats.pass_count += 1
                self._logger.info(SEPARATOR)

                # passes are bounded by tree depth unless a placeholder is stuck
                if len(pending) and stats.pass_count > stats.entry_count:
                    raise RuntimeError(
                        f"Sync did not converge after {stats.pass_count} passes, {len(pending)} entries still blocked"
                    )

            self._reconcile_deletions(pool, stats, stats_lock)

        stats.create_count = resolver.create_count

        self._store.persist()

        return stats

    def plan(self) -> SyncPlan:
        """
        Compare local tree with the store to determine pending changes.
        """

        plan = SyncPlan()
        seen: set[str] = set()

        for entry in walk_tree(self.root):
            seen.add(entry.path)

            obj = self._store.lookup(entry.path)
            if obj is None:
                plan.creates.append(entry)
            elif is_modified(entry, obj):
                plan.updates.append(entry)

        plan.deletes = sorted(set(self._store.snapshot()) - seen)

        return plan

    def _resolve_pass(
        self,
        pool: WorkerPool,
        resolver: ObjectResolver,
        entries: list[WalkEntry],
        stats: SyncStats,
        stats_lock: threading.Lock,
    ) -> list[WalkEntry]:
        """
        Resolve entries in parallel, returning those which need another pass.
        """

        pending: list[WalkEntry] = []
        pending_lock = threading.Lock()

        def task(entry: WalkEntry):
            res = resolver.resolve(entry.path)

            if res.locked:
                with pending_lock:
                    pending.append(entry)
                return

            if res.existed and not entry.is_dir:
                assert res.obj is not None
                if self._update_if_modified(entry, res.obj):
                    with stats_lock:
                        stats.update_count += 1

        self._logger.debug(f"Resolving {len(entries)} entries")
        pool.run([partial(task, e) for e in entries])

        return pending

    def _update_if_modified(self, entry: WalkEntry, obj: TrackedObject) -> bool:
        """
        Upload new content for a tracked file if it was modified, returning
        whether it was updated. Backend failure leaves the stored metadata
        unchanged so the update is attempted again next cycle.
        """

        if not is_modified(entry, obj):
            return False

        try:
            self._backend.update_file(obj.remote_id, entry.path)
        except BackendError as e:
            self._logger.debug(
                f"Failed to update {display_path(entry.path, self.root)}: {e}"
            )
            return False

        old_size = obj.size

        def update(o: TrackedObject):
            o.last_mod = entry.mtime
            o.size = entry.size

        self._store.mutate(obj, update)

        self._logger.info(
            f"updated: {display_path(entry.path, self.root)} ({format_size(old_size)} -> {format_size(entry.size)})"
        )
        return True

    def _reconcile_deletions(
        self,
        pool: WorkerPool,
        stats: SyncStats,
        stats_lock: threading.Lock,
    ):
        """
        Delete remote objects whose local path no longer exists.
        """

        deleted = self._store.snapshot()
        for entry in walk_tree(self.root):
            deleted.pop(entry.path, None)

        if not len(deleted):
            return

        def task(path: str, obj: TrackedObject):
            if self._delete(path, obj):
                with stats_lock:
                    stats.delete_count += 1

        pool.run([partial(task, p, o) for p, o in sorted(deleted.items())])
        self._logger.info(SEPARATOR)

    def _delete(self, path: str, obj: TrackedObject) -> bool:
        """
        Delete remote object and stop tracking path, returning whether a
        remote object was deleted. Tracking stops even if the backend fails,
        leaving a stale remote object rather than retrying forever. A failure
        is logged as a warning in place of the `deleted:` line, so it isn't
        reported as deleted.

        Placeholders have no remote object and are dropped without invoking
        the backend.
        """

        if not obj.remote_id:
            self._store.remove(path)
            return False

        try:
            self._backend.delete_recursive(obj.remote_id)
        except BackendError as e:
            self._logger.warning(
                f"Failed to delete {display_path(path, self.root)}: {e}"
            )
            return False
        finally:
            self._store.remove(path)

        self._logger.info(
            f"deleted: {display_path(path, self.root)} ({format_size(obj.size)})"
        )
        return True
