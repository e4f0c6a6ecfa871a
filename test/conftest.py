import logging
import os
from pathlib import Path

from pytest import FixtureRequest, fixture

from gdrive_mirror import MetadataStore, Synchronizer

from .backend_utils import RecordingBackend

logging.basicConfig(level=logging.WARNING)

FIXED_MTIME = 1_700_000_000
"""
Modification time assigned to files created by `make_tree`.
"""


@fixture(autouse=True)
def newline(request):
    """
    Print a newline and underline test name.
    """
    print("\n" + "-" * len(request.node.nodeid))


@fixture
def logger() -> logging.Logger:
    logger = logging.getLogger("gdrive-mirror-test")
    logger.setLevel(logging.DEBUG)
    return logger


@fixture
def root(tmp_path: Path) -> Path:
    """
    Empty sync root.
    """
    path = tmp_path / "root"
    path.mkdir()
    return path


@fixture
def store_file(tmp_path: Path) -> Path:
    return tmp_path / "object_map.json"


@fixture
def store(store_file: Path, root: Path) -> MetadataStore:
    return MetadataStore.load(store_file, root)


@fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@fixture
def synchronizer(
    request: FixtureRequest,
    store: MetadataStore,
    backend: RecordingBackend,
    logger: logging.Logger,
) -> Synchronizer:
    """
    Synchronizer with worker count given by `workers` marker, 4 by default.
    """
    marker = request.node.get_closest_marker("workers")
    workers = marker.args[0] if marker else 4

    return Synchronizer(store, backend, workers=workers, logger=logger)


def pytest_configure(config):
    config.addinivalue_line("markers", "workers(count): sync worker count")


def make_tree(root: Path, tree: dict[str, str | None]) -> dict[str, str]:
    """
    Create files and folders under root: mapping of relative path to file
    content, or `None` for a folder. Returns mapping of relative path to
    absolute path as a string.
    """
    paths: dict[str, str] = {}

    for rel_path, content in tree.items():
        path = root / rel_path

        if content is None:
            path.mkdir(parents=True, exist_ok=True)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
            os.utime(path, (FIXED_MTIME, FIXED_MTIME))

        paths[rel_path] = str(path)

    return paths
