"""Base plugin interface and shared option handling."""

from __future__ import annotations

import os
import shutil
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path

from pydantic import Field, field_validator

from store.config import BaseSchema
from store.models import Build

from .builder import Builder


class PluginError(RuntimeError):
    """A plugin could not run or could not read its tool's output."""


class PluginOptions(BaseSchema):
    directory: str = ""
    ignore: list[str] = Field(default_factory=list)
    binary_path: str | None = None
    timeout_seconds: int = Field(default=600, gt=0)

    @field_validator("ignore", mode="before")
    @classmethod
    def ignore_as_list(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class Plugin(ABC):
    """A build step that wraps one external tool."""

    def __init__(
        self,
        builder: Builder,
        build: Build,
        options: Mapping[str, object] | None = None,
    ) -> None:
        self.builder: Builder = builder
        self.build: Build = build
        self.options: PluginOptions = PluginOptions.from_dict(options or {})
        self.directory: str = self.options.directory.strip("/")
        self.ignore: list[str] = list(self.options.ignore)

    @classmethod
    @abstractmethod
    def plugin_name(cls) -> str:
        """Name used in build configs and error reports."""

    @classmethod
    def can_execute_on_stage(cls, stage: str, build: Build) -> bool:
        return False

    @abstractmethod
    def execute(self) -> bool:
        """Run the plugin; True when the build step passed."""

    def find_binary(self, names: Iterable[str]) -> str:
        """Locate an executable in the configured path, vendor/bin or PATH."""
        names = list(names)
        search_dirs: list[Path] = []
        if self.options.binary_path:
            search_dirs.append(Path(self.options.binary_path))
        search_dirs.append(Path(self.builder.build_path) / "vendor" / "bin")

        for directory in search_dirs:
            for name in names:
                candidate = directory / name
                if candidate.is_file() and os.access(candidate, os.X_OK):
                    return str(candidate)

        for name in names:
            found = shutil.which(name)
            if found:
                return found

        raise PluginError(f"Could not find {' / '.join(names)}")
