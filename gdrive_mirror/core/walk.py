"""
Enumeration of the local tree.
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass

__all__ = [
    "WalkEntry",
    "walk_tree",
]


@dataclass(frozen=True, kw_only=True)
class WalkEntry:
    """
    Local filesystem entry as observed during a walk.
    """

    path: str
    is_dir: bool

    mtime: int
    """
    Modification time as Unix timestamp, truncated to seconds.
    """

    size: int

    @classmethod
    def from_path(cls, path: str) -> WalkEntry:
        st = os.stat(path)
        return WalkEntry(
            path=path,
            is_dir=stat.S_ISDIR(st.st_mode),
            mtime=int(st.st_mtime),
            size=st.st_size,
        )


def walk_tree(root: str) -> list[WalkEntry]:
    """
    Walk folder depth-first in lexical order, returning entries for the root
    itself and everything beneath it. Any error accessing an entry is raised.

    Symlinked folders are skipped: there is no remote equivalent of a link,
    and following them could escape the root or cycle. Symlinked files are
    followed and mirrored as regular files.
    """

    entries: list[WalkEntry] = []

    def recurse(entry: WalkEntry):
        entries.append(entry)

        if not entry.is_dir:
            return

        for name in sorted(os.listdir(entry.path)):
            path = os.path.join(entry.path, name)
            if os.path.islink(path) and os.path.isdir(path):
                continue
            recurse(WalkEntry.from_path(path))

    recurse(WalkEntry.from_path(root))

    return entries
