"""
This module implements mirroring of a local folder to a remote object store.

The main entry point is {obj}`Synchronizer`, which walks the local tree and
creates, updates and deletes remote objects via a {obj}`Backend`, tracking
the mapping of local paths to remote ids in a {obj}`MetadataStore`.
"""

from pyrollup import rollup

from . import (
    backend,
    exceptions,
    locking,
    pool,
    resolver,
    scheduler,
    store,
    sync,
    utils,
    walk,
)
from .backend import *  # noqa
from .exceptions import *  # noqa
from .locking import *  # noqa
from .pool import *  # noqa
from .resolver import *  # noqa
from .scheduler import *  # noqa
from .store import *  # noqa
from .sync import *  # noqa
from .utils import *  # noqa
from .walk import *  # noqa

__all__ = rollup(
    sync,
    resolver,
    store,
    backend,
    pool,
    scheduler,
    walk,
    locking,
    exceptions,
    utils,
)
