"""
Interface to configuration as persisted in .yaml file.
"""
from __future__ import annotations

from logging import Logger
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import (
    BaseModel,
    field_serializer,
    field_validator,
    model_validator,
)

from ..core import (
    ConfigurationError,
    Locale,
    StatusCallback,
    Synchronizer,
    Workspace,
)
from ..drivers import FileLocalStore, RestBlobStore, RestRemoteStore

__all__ = [
    "BaseYamlModel",
    "Config",
    "InstanceConfig",
]


class BaseYamlModel(BaseModel):
    """
    Base pydantic model with additional functionality to load from and dump
    to .yaml file.
    """

    @classmethod
    def load_yaml(cls, file: Path) -> Self:
        """
        Load model from .yaml file.
        """
        if not file.is_file():
            raise ValueError(f"file does not exist: '{file}'")

        with file.open() as fh:
            model = yaml.safe_load(fh)

        if not isinstance(model, dict):
            raise ValueError(f"Invalid yaml contents: {model}")

        return cls(**model)

    def dump_yaml(self, file: Path):
        """
        Dump model to .yaml file.
        """
        model = self.model_dump(by_alias=True, exclude_none=True)
        file.write_text(
            yaml.safe_dump(model, default_flow_style=False, sort_keys=False)
        )


class Config(BaseYamlModel):
    """
    Encapsulates configuration for use in tools.
    """

    root_data_dir: Path | None = None
    """
    Root folder for per-instance local data dirs.
    """

    instances: dict[str, InstanceConfig]
    """
    Mapping of instance names to configs.
    """

    @field_validator("root_data_dir", mode="before")
    def validate_root_data_dir(cls, value: Any) -> Any:
        return _validate_dir(value)

    @field_serializer("root_data_dir")
    def serialize_root_data_dir(self, value: Path | None) -> str | None:
        return str(value) if isinstance(value, Path) else value

    @model_validator(mode="after")
    def validate_instances(self) -> Self:
        # propagate data dir to instances if applicable
        if self.root_data_dir:
            for instance_name, instance in self.instances.items():
                if not instance.data_dir:
                    data_dir = self.root_data_dir / instance_name
                    data_dir.mkdir(exist_ok=True)

                    instance.data_dir = data_dir
        return self


class InstanceConfig(BaseModel):
    """
    Encapsulates info for a remote service and the local data synced with
    it.
    """

    url: str
    """Base URL of the remote service"""

    api_key: str
    """Public API key of the remote service"""

    owner_id: str | None = None
    """Effective owner whose data is synced"""

    access_token: str | None = None
    """Access token of the authenticated user, if not using the API key"""

    data_dir: Path | None = None
    """Folder holding local data"""

    bucket: str = "documents"
    """Storage bucket holding document files"""

    locale: Locale = "en"
    """Language of status messages"""

    @field_validator("url")
    def validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"url must start with http:// or https://: '{value}'")
        return value.rstrip("/")

    @field_validator("data_dir", mode="before")
    def validate_data_dir(cls, value: Any) -> Any:
        return _validate_dir(value)

    @field_serializer("data_dir")
    def serialize_data_dir(self, value: Path | None) -> str | None:
        return str(value) if isinstance(value, Path) else value

    def create_remote(self, *, logger: Logger) -> RestRemoteStore:
        return RestRemoteStore(
            self.url,
            self.api_key,
            access_token=self.access_token,
            logger=logger,
        )

    def create_blobs(self, *, logger: Logger) -> RestBlobStore:
        return RestBlobStore(
            self.url,
            self.api_key,
            bucket=self.bucket,
            access_token=self.access_token,
            logger=logger,
        )

    def create_synchronizer(
        self, *, logger: Logger, on_status: StatusCallback | None = None
    ) -> Synchronizer:
        """
        Get synchronizer from this instance's fields.
        """
        return Synchronizer(
            self.create_remote(logger=logger),
            self.create_blobs(logger=logger),
            owner_id=self.owner_id,
            locale=self.locale,
            on_status=on_status,
            logger=logger,
        )

    def load_workspace(self, *, logger: Logger) -> Workspace:
        """
        Load local data of this instance's owner.
        """
        if self.data_dir is None:
            raise ConfigurationError("No data dir configured")

        if self.owner_id is None:
            raise ConfigurationError("No owner configured")

        return Workspace.load(
            FileLocalStore(self.data_dir, logger=logger),
            self.owner_id,
            logger=logger,
        )


def _validate_dir(value: Any) -> Any:
    """
    Coerce to path and ensure it exists.
    """
    if not isinstance(value, (str, Path)):
        # let pydantic handle type error
        return value

    path = Path(value) if isinstance(value, str) else value

    if not path.is_dir():
        raise ValueError(f"folder does not exist: '{path}'")

    return path
