"""
Entry point of `gdrive-mirror` CLI.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import dotenv
from click.exceptions import BadParameter
from pydantic import ValidationError
from typer import Argument, Context, Exit, Option

from ...core import (
    Backend,
    BackendError,
    MetadataStore,
    StoreError,
    display_path,
    format_size,
    run_periodic,
)
from ..config import Config
from ._utils import MainTyper, console, get_root_context, logger, lookup_param

app = MainTyper(
    "gdrive-mirror",
    help="Mirror a local folder to Google Drive",
)


@app.callback()
def main(
    ctx: Context,
    config_file: Path = Option(
        "gdrive-mirror.yaml",
        help=".yaml file containing sync configuration",
        envvar="GDRIVE_MIRROR_CONFIG_FILE",
        dir_okay=False,
    ),
    verbose: bool = Option(
        False,
        "-v",
        "--verbose",
        help="Log backend commands and retries",
    ),
):
    # load environment variables from .env file if it exists
    dotenv.load_dotenv(Path(".env").resolve(), override=True)

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    ctx.obj = RootContext(ctx=ctx, config_file=config_file)


@app.command()
def run(
    ctx: Context,
    max_cycles: int
    | None = Option(
        None,
        "--max-cycles",
        help="Stop after this many cycles instead of running forever",
        min=1,
    ),
):
    """
    Sync periodically, waiting the configured delay between cycles
    """

    root_context = get_root_context(ctx)
    config = root_context.load_config()
    backend = root_context.create_backend(config)
    store = root_context.create_store(config)

    synchronizer = config.create_synchronizer(store, backend, logger=logger)

    run_periodic(
        synchronizer.sync,
        delay=config.sync_delay,
        logger=logger,
        max_cycles=max_cycles,
    )


@app.command()
def sync(ctx: Context):
    """
    Run a single sync cycle
    """

    root_context = get_root_context(ctx)
    config = root_context.load_config()
    backend = root_context.create_backend(config)
    store = root_context.create_store(config)

    synchronizer = config.create_synchronizer(store, backend, logger=logger)

    logger.info("Syncing...")

    try:
        stats = synchronizer.sync()
    except Exception as e:
        logger.error(f"Sync error! err: ({e})")
        raise Exit(code=1)

    logger.info(
        f"Synced {stats.entry_count} entries in {stats.pass_count} passes ({stats.create_count} created, {stats.update_count} updated, {stats.delete_count} deleted)"
    )


@app.command()
def status(ctx: Context):
    """
    Show changes the next sync would make, without contacting Google Drive
    """

    root_context = get_root_context(ctx)
    config = root_context.load_config()
    store = root_context.create_store(config)

    # plan doesn't invoke the backend
    synchronizer = config.create_synchronizer(
        store, config.create_backend(logger=logger), logger=logger
    )
    plan = synchronizer.plan()
    root = store.root

    if plan.is_empty:
        logger.info(f"Up to date: {len(store)} tracked paths")
        return

    for entry in plan.creates:
        kind = "folder" if entry.is_dir else format_size(entry.size)
        console.print(
            f"[bright_green]create[/bright_green] {display_path(entry.path, root)} ({kind})",
            highlight=False,
        )

    for entry in plan.updates:
        console.print(
            f"[bright_yellow]update[/bright_yellow] {display_path(entry.path, root)} ({format_size(entry.size)})",
            highlight=False,
        )

    for path in plan.deletes:
        console.print(
            f"[red]delete[/red] {display_path(path, root)}", highlight=False
        )

    logger.info(
        f"Pending: (create/update/delete) {len(plan.creates)}/{len(plan.updates)}/{len(plan.deletes)}"
    )


@app.command()
def init(
    ctx: Context,
    target: Path = Argument(
        help="Local folder to mirror",
        exists=True,
        file_okay=False,
    ),
    root_folder_id: str = Option(
        "",
        help="Google Drive folder id in which to mirror; top level of drive if not given",
    ),
    account: str
    | None = Option(
        None,
        help="gdrive account to switch to before syncing",
    ),
    overwrite: bool = Option(
        False,
        "--overwrite",
        help="Whether to overwrite config file if it already exists",
    ),
):
    """
    Write a new config file for the given folder
    """

    root_context = get_root_context(ctx)
    config_file = root_context.config_file

    if config_file.exists() and not overwrite:
        raise BadParameter(
            f"config file '{config_file}' exists and --overwrite was not passed",
            ctx=ctx,
            param=lookup_param(ctx, "config_file"),
        )

    config = Config(
        gd_account_name=account,
        gd_root_folder_id=root_folder_id,
        sync_target_path=target,
    )
    config.dump_yaml(config_file)

    logger.info(f"Wrote config for '{config.sync_target_path}' to '{config_file}'")


def run_app():
    app()


@dataclass(kw_only=True)
class RootContext:
    ctx: Context
    config_file: Path

    def load_config(self) -> Config:
        """
        Load config from file, reporting errors as a bad parameter.
        """
        param = lookup_param(self.ctx, "config_file")

        # ensure config file exists
        if not self.config_file.is_file():
            raise BadParameter(
                message=f"file does not exist: {self.config_file}",
                ctx=self.ctx,
                param=param,
            )

        try:
            return Config.load_yaml(self.config_file)
        except (ValueError, ValidationError) as e:
            raise BadParameter(
                f"failed to load config file '{self.config_file}': {e}",
                ctx=self.ctx,
                param=param,
            )

    def create_backend(self, config: Config) -> Backend:
        """
        Get backend and switch to the configured account, if any.
        """
        backend = config.create_backend(logger=logger)

        if config.gd_account_name:
            try:
                backend.switch_account(config.gd_account_name)
            except BackendError as e:
                logger.error(
                    f"Failed to switch to account '{config.gd_account_name}': {e}"
                )
                raise Exit(code=1)

        return backend

    def create_store(self, config: Config) -> MetadataStore:
        try:
            return config.create_store()
        except StoreError as e:
            logger.error(str(e))
            raise Exit(code=1)


if __name__ == "__main__":
    app()
