"""
Common utilities.
"""

import os

__all__ = [
    "SEPARATOR",
    "format_size",
    "display_path",
]

SEPARATOR = "-" * 66
"""
Line logged between sync phases and cycles.
"""


def format_size(size: int) -> str:
    """
    Format byte count using the largest unit which doesn't round to zero,
    e.g. `1.50 MB`, `0.98 KB` or `12 B`.
    """
    size_mb = f"{size / (1024 * 1024):.2f}"
    if size_mb != "0.00":
        return f"{size_mb} MB"

    size_kb = f"{size / 1024:.2f}"
    if size_kb != "0.00":
        return f"{size_kb} KB"

    return f"{size} B"


def display_path(path: str, root: str) -> str:
    """
    Get path for notifications, relative to the folder containing the sync
    root so the root's own name is kept.
    """
    return os.path.relpath(path, os.path.dirname(root))
