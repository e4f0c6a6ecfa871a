"""
gdrive-mirror: one-way mirroring of a local folder to Google Drive.
"""

from pyrollup import rollup

from . import core
from .core import *  # noqa

__all__ = rollup(core)
