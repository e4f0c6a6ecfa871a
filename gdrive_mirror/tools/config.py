"""
Interface to configuration as persisted in .yaml file.

Keys are compatible with `bgdrive-sync` configs, e.g.:

```yaml
gd_account_name: me@example.com
gd_root_folder_id: 1AbCdEf
sync_target_path: /home/me/photos
sync_delay_minute: 30
sync_worker: 8
sync_retry: 3
```
"""
from __future__ import annotations

import datetime
from logging import Logger
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import (
    BaseModel,
    Field,
    ValidationInfo,
    field_serializer,
    field_validator,
)

from ..core import (
    Backend,
    GdriveBackend,
    MetadataStore,
    SimulatedBackend,
    Synchronizer,
)

__all__ = [
    "DEFAULT_STORE_FILENAME",
    "Config",
]

DEFAULT_STORE_FILENAME = "object_map.json"
"""
Filename of metadata store, placed alongside the config file unless
configured otherwise.
"""


class Config(BaseModel):
    """
    Encapsulates configuration of a mirrored folder.

    Relative paths are interpreted relative to the folder containing the
    config file.
    """

    gd_account_name: str | None = None
    """
    Account to select in gdrive before syncing, if any.
    """

    gd_root_folder_id: str = ""
    """
    Remote folder in which to mirror the local folder; empty for the top
    level of the drive.
    """

    sync_target_path: Path
    """
    Local folder to mirror.
    """

    sync_delay_minute: int = Field(5, ge=0)
    """
    Minutes to wait between sync cycles.
    """

    sync_worker: int = Field(4, ge=1)
    """
    Number of concurrent backend operations.
    """

    sync_retry: int = Field(0, ge=0)
    """
    Number of times to retry a failed backend operation.
    """

    test_mode: bool = False
    """
    Don't invoke gdrive; sleep for `test_mode_op_delay_ms` per operation
    instead.
    """

    test_mode_op_delay_ms: int = Field(0, ge=0)

    store_file: Path | None = None
    """
    Metadata store, `object_map.json` in the config folder by default.
    """

    gdrive_path: str = "gdrive"
    """
    gdrive executable.
    """

    @field_validator("sync_target_path", mode="before")
    def validate_sync_target_path(cls, value: Any, info: ValidationInfo) -> Any:
        path = _resolve_path(value, info)
        if isinstance(path, Path) and not path.is_dir():
            raise ValueError(f"folder does not exist: '{path}'")
        return path

    @field_validator("store_file", mode="before")
    def validate_store_file(cls, value: Any, info: ValidationInfo) -> Any:
        path = _resolve_path(value, info)
        if isinstance(path, Path) and not path.parent.is_dir():
            raise ValueError(f"folder does not exist: '{path.parent}'")
        return path

    @field_serializer("sync_target_path", "store_file")
    def serialize_path(self, value: Path | None) -> str | None:
        return str(value) if isinstance(value, Path) else value

    @property
    def sync_delay(self) -> datetime.timedelta:
        return datetime.timedelta(minutes=self.sync_delay_minute)

    @classmethod
    def load_yaml(cls, file: Path) -> Self:
        """
        Load config from .yaml file.
        """
        with file.open() as fh:
            try:
                model = yaml.safe_load(fh)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid yaml: {e}") from e

        if not isinstance(model, dict):
            raise ValueError(f"Invalid yaml contents: {model}")

        config = cls.model_validate(
            model, context={"base_dir": file.resolve().parent}
        )

        if config.store_file is None:
            config.store_file = file.resolve().parent / DEFAULT_STORE_FILENAME

        return config

    def dump_yaml(self, file: Path):
        """
        Dump config to .yaml file.
        """
        model = self.model_dump(exclude_none=True)
        model_yaml = yaml.safe_dump(
            model, default_flow_style=False, sort_keys=False
        )
        file.write_text(model_yaml)

    def create_backend(self, *, logger: Logger | None = None) -> Backend:
        """
        Get backend according to test mode.
        """
        if self.test_mode:
            return SimulatedBackend(self.test_mode_op_delay_ms)
        return GdriveBackend(self.gdrive_path, logger=logger)

    def create_store(self) -> MetadataStore:
        """
        Load metadata store, raising {obj}`StoreError` if it can't be read.
        """
        store_file = self.store_file or Path(DEFAULT_STORE_FILENAME).resolve()
        return MetadataStore.load(
            store_file,
            self.sync_target_path,
            root_folder_id=self.gd_root_folder_id,
        )

    def create_synchronizer(
        self, store: MetadataStore, backend: Backend, *, logger: Logger
    ) -> Synchronizer:
        return Synchronizer(
            store,
            backend,
            workers=self.sync_worker,
            retry=self.sync_retry,
            logger=logger,
        )


def _resolve_path(value: Any, info: ValidationInfo) -> Any:
    """
    Coerce to absolute path, relative to config folder if loading from file.
    """
    if not isinstance(value, (str, Path)):
        # let pydantic handle type error
        return value

    path = Path(value).expanduser()

    if not path.is_absolute():
        base_dir = info.context.get("base_dir") if info.context else None
        path = (base_dir or Path.cwd()) / path

    return path.resolve()
