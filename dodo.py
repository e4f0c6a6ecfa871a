"""
Doit tasks for testing, formatting and type checking gdrive-mirror.
"""

import shutil
from pathlib import Path

from doit.task import Task
from doit.tools import create_folder

PACKAGE = "gdrive_mirror"

OUT_PATH = Path("__out__")
COV_PATH = OUT_PATH / "cov"


def remove_dir(path: Path):
    if path.exists():
        shutil.rmtree(path)


def task_test() -> Task:
    """
    Run tests with coverage report.
    """

    return Task(
        "test",
        actions=[
            (create_folder, [COV_PATH]),
            f"pytest --cov={PACKAGE} --cov-report=html:{COV_PATH / 'html'}",
        ],
        targets=[COV_PATH / "html" / "index.html"],
        file_dep=[],
        clean=[(remove_dir, [COV_PATH])],
    )


def task_format() -> Task:
    """
    Remove unused imports and format sources.
    """

    return Task(
        "format",
        actions=[
            f"autoflake --remove-all-unused-imports -i -r {PACKAGE} test",
            "isort .",
            "black .",
            "toml-sort -i pyproject.toml",
        ],
        targets=[],
        file_dep=[],
    )


def task_check() -> Task:
    """
    Type check package and tests.
    """

    return Task(
        "check",
        actions=[f"mypy {PACKAGE} test"],
        targets=[],
        file_dep=[],
    )
