"""Lazily built, shared store instances."""

from __future__ import annotations

from typing import Any

from .base import Store
from .database import DatabaseManager
from .exceptions import InvalidArgumentError
from .stores import BuildErrorStore, BuildMetaStore, BuildStore, ProjectStore

STORE_CLASSES: dict[str, type[Store[Any]]] = {
    "Project": ProjectStore,
    "Build": BuildStore,
    "BuildError": BuildErrorStore,
    "BuildMeta": BuildMetaStore,
}


class StoreRegistry:
    """One store per record kind, all sharing the same connections."""

    def __init__(self, database_manager: DatabaseManager) -> None:
        self.database_manager: DatabaseManager = database_manager
        self._stores: dict[str, Store[Any]] = {}

    def get(self, name: str) -> Store[Any]:
        if name not in self._stores:
            store_class = STORE_CLASSES.get(name)
            if store_class is None:
                raise InvalidArgumentError(f"No store registered for '{name}'")
            self._stores[name] = store_class(self.database_manager, self)
        return self._stores[name]
