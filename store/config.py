"""Database configuration with YAML support."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import BaseModel, Field, model_validator

TBaseSchema = TypeVar("TBaseSchema", bound="BaseSchema")


class BaseSchema(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    def to_dict(self) -> dict[str, object]:
        return self.model_dump()

    @classmethod
    def from_json(cls: type[TBaseSchema], data: str) -> TBaseSchema:
        return cls.model_validate_json(data)

    @classmethod
    def from_dict(cls: type[TBaseSchema], data: Mapping[str, object]) -> TBaseSchema:
        return cls.model_validate(data)


class DatabaseConfig(BaseSchema):
    """Where the write and read connections point.

    ``read_path`` is for replica setups; it falls back to ``path``.
    """

    path: str = Field(min_length=1)
    read_path: str | None = None
    initialize: bool = True
    timeout_seconds: float = Field(default=5.0, gt=0)

    @model_validator(mode="after")
    def default_read_path(self) -> "DatabaseConfig":
        if not self.read_path:
            self.read_path = self.path
        return self


def load_config(yaml_path: str | Path) -> DatabaseConfig:
    """Load the database configuration from a YAML file.

    The file may hold the settings at the top level or under a ``database`` key.

    Raises:
        FileNotFoundError: If the YAML file doesn't exist
        ValueError: If the YAML is empty or the settings are invalid
    """
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    with open(yaml_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data or not isinstance(data, dict):
        raise ValueError(f"Empty or invalid YAML file: {yaml_path}")

    section = data.get("database", data)
    try:
        return DatabaseConfig.from_dict(section)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {yaml_path}: {e}") from e


def save_config(config: DatabaseConfig, yaml_path: str | Path) -> None:
    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    data = {"database": config.to_dict()}

    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2)
