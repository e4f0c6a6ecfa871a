import json
import logging
from pathlib import Path

from pytest import fixture
from typer.testing import CliRunner

from gdrive_mirror.tools.cli.main import app
from gdrive_mirror.tools.config import DEFAULT_STORE_FILENAME, Config

from ..conftest import make_tree

DIVIDER = "=" * 40


class LogHandler(logging.Handler):
    """
    Handler to create a list of logs for testcases to access for verification.
    """

    test_logs: list[str]

    def __init__(self):
        super().__init__()
        self.test_logs = []

    def emit(self, record: logging.LogRecord):
        self.test_logs.append(record.getMessage())


runner = CliRunner()


@fixture
def log_handler():
    handler = LogHandler()
    logger = logging.getLogger("gdrive-mirror")

    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)


@fixture
def config_file(tmp_path: Path, root: Path) -> Path:
    """
    Config file for test mode, so gdrive is never invoked.
    """
    make_tree(root, {"a.txt": "a", "docs/b.txt": "bb"})

    path = tmp_path / "gdrive-mirror.yaml"
    Config(
        sync_target_path=root,
        gd_account_name="me@example.com",
        sync_worker=1,
        test_mode=True,
    ).dump_yaml(path)

    return path


def test_init(tmp_path: Path, root: Path):
    config_path = tmp_path / "config.yaml"

    _run(
        [
            "--config-file",
            config_path,
            "init",
            root,
            "--root-folder-id",
            "folder-id",
        ]
    )

    config = Config.load_yaml(config_path)
    assert config.sync_target_path == root.resolve()
    assert config.gd_root_folder_id == "folder-id"
    assert config.gd_account_name is None

    # refuses to overwrite
    _run(["--config-file", config_path, "init", root], 2)

    _run(
        [
            "--config-file",
            config_path,
            "init",
            root,
            "--account",
            "me@example.com",
            "--overwrite",
        ]
    )

    config = Config.load_yaml(config_path)
    assert config.gd_account_name == "me@example.com"
    assert config.gd_root_folder_id == ""

    # nonexistent target
    _run(["--config-file", config_path, "init", tmp_path / "missing"], 2)


def test_sync(config_file: Path, root: Path, log_handler: LogHandler):
    _run(["--config-file", config_file, "sync"])

    store_file = config_file.parent / DEFAULT_STORE_FILENAME
    objects = json.loads(store_file.read_text())

    assert sorted(objects) == sorted(str(p) for p in root.rglob("*"))
    assert all(o["gd_id"] == "0" for o in objects.values())

    assert (
        "Synced 4 entries in 1 passes (3 created, 0 updated, 0 deleted)"
        in log_handler.test_logs
    )

    # nothing left to do
    _run(["--config-file", config_file, "sync"])
    assert (
        "Synced 4 entries in 1 passes (0 created, 0 updated, 0 deleted)"
        in log_handler.test_logs
    )


def test_status(config_file: Path, root: Path, log_handler: LogHandler):
    output = _run(["--config-file", config_file, "status"])

    assert "create root/a.txt (1 B)" in output
    assert "create root/docs (folder)" in output
    assert "Pending: (create/update/delete) 3/0/0" in log_handler.test_logs

    # status doesn't sync
    store_file = config_file.parent / DEFAULT_STORE_FILENAME
    assert json.loads(store_file.read_text()) == {}

    _run(["--config-file", config_file, "sync"])
    (root / "a.txt").unlink()

    output = _run(["--config-file", config_file, "status"])
    assert "delete root/a.txt" in output

    _run(["--config-file", config_file, "sync"])
    _run(["--config-file", config_file, "status"])
    assert "Up to date: 2 tracked paths" in log_handler.test_logs


def test_run(config_file: Path, log_handler: LogHandler):
    _run(["--config-file", config_file, "run", "--max-cycles", "1"])

    assert log_handler.test_logs[0] == "Syncing..."
    assert any(
        log.startswith("Synced! (3 created, 0 updated, 0 deleted)")
        for log in log_handler.test_logs
    )


def test_bad_config(tmp_path: Path, config_file: Path):
    # missing config file
    _run(["--config-file", tmp_path / "missing.yaml", "sync"], 2)

    # invalid config file
    bad_config = tmp_path / "bad.yaml"
    bad_config.write_text("sync_worker: many\n")
    _run(["--config-file", bad_config, "status"], 2)

    # corrupt store
    (config_file.parent / DEFAULT_STORE_FILENAME).write_text("[1, 2]")
    _run(["--config-file", config_file, "sync"], 1)


def _run(cmd: list[str | Path], exit_code: int = 0) -> str:
    """
    Run command, verify exit code, and return its output.
    """

    cmd_norm = [str(c) for c in cmd]

    print(DIVIDER)
    print(f"$ gdrive-mirror {' '.join(cmd_norm)}")

    result = runner.invoke(app, args=cmd_norm, catch_exceptions=False)

    print(result.output.strip())
    print(DIVIDER)

    assert result.exit_code == exit_code
    return result.output
