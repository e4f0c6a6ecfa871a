"""
Metadata store mapping local paths to remote objects.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Callable

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .exceptions import StoreError
from .locking import ReadWriteLock

__all__ = [
    "ROOT_MARKER",
    "TrackedObject",
    "MetadataStore",
]

ROOT_MARKER = "."
"""
Remote id used for the sync root when no root folder id is configured; the
backend creates children of this object at the top level of the drive.
"""


class TrackedObject(BaseModel):
    """
    Remote object corresponding to a local path. An empty `remote_id` marks
    a placeholder whose remote creation is in flight.
    """

    remote_id: str = Field(
        validation_alias=AliasChoices("remote_id", "gd_id"),
        serialization_alias="gd_id",
    )
    parent_remote_id: str = Field(
        "",
        validation_alias=AliasChoices("parent_remote_id", "gdp_id"),
        serialization_alias="gdp_id",
    )
    last_mod: int = 0
    """
    Unix timestamp of the local file when last uploaded; 0 for folders.
    """

    size: int = 0


_OBJECT_MAP = TypeAdapter(dict[str, TrackedObject])


class MetadataStore:
    """
    Owns the mapping of local paths to tracked objects along with its
    persistence. Every access is synchronized by a single reader/writer lock,
    and `try_insert` is the only way to add an entry: concurrent callers
    racing to create the same path see exactly one of them succeed.
    """

    file: Path
    """
    Backing `.json` file.
    """

    root: str
    """
    Absolute path of the sync root, which is never stored in the map.
    """

    root_folder_id: str
    """
    Remote id of the sync root.
    """

    _objects: dict[str, TrackedObject]
    _lock: ReadWriteLock

    def __init__(
        self,
        file: Path,
        root: str | Path,
        *,
        root_folder_id: str | None = None,
        objects: dict[str, TrackedObject] | None = None,
    ):
        self.file = file
        self.root = os.path.abspath(root)
        self.root_folder_id = root_folder_id or ROOT_MARKER
        self._objects = objects if objects is not None else dict()
        self._lock = ReadWriteLock()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._objects)

    @classmethod
    def load(
        cls,
        file: Path,
        root: str | Path,
        *,
        root_folder_id: str | None = None,
    ) -> MetadataStore:
        """
        Load store from file, creating it with an empty mapping if it
        doesn't exist.

        Entries without a remote id are dropped: a placeholder is only
        meaningful while the worker which inserted it is running, and one
        found on disk would block its path and descendants forever.
        """
        try:
            if not file.exists():
                file.write_text("{}")
            raw = file.read_text()
        except OSError as e:
            raise StoreError(f"Failed to open store file ({e})", path=file)

        try:
            objects = _OBJECT_MAP.validate_json(raw if raw.strip() else "{}")
        except PydanticValidationError as e:
            raise StoreError(
                f"Invalid store file contents ({e.error_count()} errors)",
                path=file,
            )

        objects = {path: obj for path, obj in objects.items() if obj.remote_id}

        return cls(file, root, root_folder_id=root_folder_id, objects=objects)

    def try_insert(self, path: str, obj: TrackedObject) -> bool:
        """
        Store object iff there's no entry for this path, returning whether
        it was stored.
        """
        with self._lock.write():
            if path in self._objects:
                return False
            self._objects[path] = obj
            return True

    def lookup(self, path: str) -> TrackedObject | None:
        """
        Get entry for path, or a synthesized entry if path is the sync root.
        """
        if path == self.root:
            return TrackedObject(remote_id=self.root_folder_id)

        with self._lock.read():
            return self._objects.get(path)

    def is_locked(self, obj: TrackedObject) -> bool:
        """
        Check whether object is a placeholder for an in-flight creation.
        """
        with self._lock.read():
            return obj.remote_id == ""

    def mutate(
        self, obj: TrackedObject, func: Callable[[TrackedObject], None]
    ) -> TrackedObject:
        """
        Apply a change to a stored object in place.
        """
        with self._lock.write():
            func(obj)
        return obj

    def remove(self, path: str):
        with self._lock.write():
            self._objects.pop(path, None)

    def snapshot(self) -> dict[str, TrackedObject]:
        """
        Get a deep copy of all entries.
        """
        with self._lock.read():
            return {
                path: obj.model_copy(deep=True)
                for path, obj in self._objects.items()
            }

    def persist(self):
        """
        Write all entries to the backing file. The file is replaced
        atomically, so an interrupted write leaves the previous contents.
        """
        data = {
            path: obj.model_dump(by_alias=True)
            for path, obj in self.snapshot().items()
        }

        try:
            with tempfile.NamedTemporaryFile(
                "w",
                dir=self.file.parent,
                prefix=f".{self.file.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                fh.write(json.dumps(data, indent="\t"))

            try:
                os.replace(fh.name, self.file)
            except OSError:
                os.unlink(fh.name)
                raise
        except OSError as e:
            raise StoreError(f"Failed to write store file ({e})", path=self.file)
