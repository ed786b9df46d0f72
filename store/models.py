"""
Record types persisted by the stores.

Each record kind declares its columns once, as ``Column`` class attributes.
The declared columns make up ``FIELDS``, the schema descriptor that maps a
field name to the logical type used for casting.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, ClassVar, cast

from .casting import (
    CAST_ARRAY,
    CAST_BOOLEAN,
    CAST_DATETIME,
    CAST_DEFAULT,
    CAST_INTEGER,
    CAST_NEWLINE,
    CAST_STRING,
    CAST_TYPES,
    cast_from_database,
)
from .exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from .registry import StoreRegistry
    from .stores import BuildMetaStore


class Column:
    """Declared record field backed by the record's data mapping."""

    def __init__(self, cast: str = CAST_DEFAULT) -> None:
        if cast not in CAST_TYPES:
            raise InvalidArgumentError(f"Unknown cast type: {cast}")
        self.cast: str = cast
        self.name: str = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Record | None, owner: type) -> object:
        if instance is None:
            return self
        return instance.get_value(self.name)

    def __set__(self, instance: Record, value: object) -> None:
        instance.set_value(self.name, value)


class Record:
    """Base class for every persisted record kind."""

    FIELDS: ClassVar[dict[str, str]] = {}

    id = Column(CAST_INTEGER)

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        fields: dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            for name, attribute in vars(klass).items():
                if isinstance(attribute, Column):
                    fields[name] = attribute.cast
        cls.FIELDS = fields

    def __init__(
        self,
        store_registry: StoreRegistry | None = None,
        initial_data: Mapping[str, object] | None = None,
    ) -> None:
        self._store_registry: StoreRegistry | None = store_registry
        self._data: dict[str, object] = {name: None for name in self.FIELDS}
        self._modified: set[str] = set()
        if initial_data:
            for name, value in initial_data.items():
                if name in self._data:
                    self._data[name] = cast_from_database(self.FIELDS[name], value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.get_id()!r}>"

    def get_id(self) -> int | None:
        value = self._data.get("id")
        return cast(int | None, value)

    def get_data_array(self) -> dict[str, object]:
        return dict(self._data)

    def get_modified(self) -> set[str]:
        return set(self._modified)

    def get_cast(self, field: str) -> str:
        return self.FIELDS.get(field, CAST_DEFAULT)

    def get_value(self, field: str) -> object:
        self._check_field(field)
        return self._data[field]

    def set_value(self, field: str, value: object) -> None:
        """Assign a field and flag it for the next save when the value changes."""
        self._check_field(field)
        current = self._data[field]
        # bool and int compare equal
        if current == value and type(current) is type(value):
            return
        self._data[field] = value
        self._modified.add(field)

    def _check_field(self, field: str) -> None:
        if field not in self.FIELDS:
            raise InvalidArgumentError(
                f"{type(self).__name__} has no field named '{field}'"
            )

    def _require_registry(self) -> StoreRegistry:
        if self._store_registry is None:
            raise InvalidArgumentError(
                f"{type(self).__name__} is not attached to a store registry"
            )
        return self._store_registry


class Project(Record):
    STATUS_INACTIVE: ClassVar[int] = 0
    STATUS_ACTIVE: ClassVar[int] = 1

    name = Column(CAST_STRING)
    status = Column(CAST_INTEGER)
    reference = Column(CAST_STRING)
    default_branch = Column(CAST_STRING)
    environments = Column(CAST_NEWLINE)
    build_config = Column(CAST_ARRAY)
    archived = Column(CAST_BOOLEAN)
    create_date = Column(CAST_DATETIME)


class Build(Record):
    STATUS_PENDING: ClassVar[int] = 0
    STATUS_RUNNING: ClassVar[int] = 1
    STATUS_SUCCESS: ClassVar[int] = 2
    STATUS_FAILED: ClassVar[int] = 3

    STAGE_SETUP: ClassVar[str] = "setup"
    STAGE_TEST: ClassVar[str] = "test"
    STAGE_DEPLOY: ClassVar[str] = "deploy"
    STAGE_COMPLETE: ClassVar[str] = "complete"
    STAGE_SUCCESS: ClassVar[str] = "success"
    STAGE_FAILURE: ClassVar[str] = "failure"
    STAGE_FIXED: ClassVar[str] = "fixed"
    STAGE_BROKEN: ClassVar[str] = "broken"

    project_id = Column(CAST_INTEGER)
    commit_id = Column(CAST_STRING)
    status = Column(CAST_INTEGER)
    log = Column(CAST_STRING)
    branch = Column(CAST_STRING)
    create_date = Column(CAST_DATETIME)
    start_date = Column(CAST_DATETIME)
    finish_date = Column(CAST_DATETIME)
    committer_email = Column(CAST_STRING)
    commit_message = Column(CAST_STRING)
    extra = Column(CAST_ARRAY)
    errors_total = Column(CAST_INTEGER)

    def get_project(self) -> Project | None:
        if self.project_id is None:
            return None
        store = self._require_registry().get("Project")
        return cast(Project | None, store.get_by_primary_key(cast(int, self.project_id)))

    def report_error(
        self,
        plugin: str,
        message: str,
        severity: int,
        file: str | None = None,
        line_start: int | None = None,
        line_end: int | None = None,
    ) -> BuildError:
        """Persist one error found by a plugin while running this build."""
        error = BuildError(self._require_registry())
        error.build_id = self.get_id()
        error.plugin = plugin
        error.message = message
        error.severity = severity
        error.file = file
        error.line_start = line_start
        error.line_end = line_end
        error.hash = BuildError.generate_hash(plugin, file, line_start, line_end, severity, message)
        error.create_date = datetime.now().replace(microsecond=0)
        saved = self._require_registry().get("BuildError").save(error)
        return cast(BuildError, saved)

    def store_meta(self, key: str, value: object) -> BuildMeta:
        """Save a value under ``key`` for this build, replacing any previous one."""
        registry = self._require_registry()
        build_id = cast(int, self.get_id())
        meta_store = cast("BuildMetaStore", registry.get("BuildMeta"))
        existing = meta_store.get_by_key(build_id, key, "write")
        meta = cast(BuildMeta, existing) if existing is not None else BuildMeta(registry)
        meta.build_id = build_id
        meta.meta_key = key
        meta.meta_value = value
        saved = meta_store.save(meta)
        return cast(BuildMeta, saved)


class BuildError(Record):
    SEVERITY_CRITICAL: ClassVar[int] = 0
    SEVERITY_HIGH: ClassVar[int] = 1
    SEVERITY_NORMAL: ClassVar[int] = 2
    SEVERITY_LOW: ClassVar[int] = 3

    build_id = Column(CAST_INTEGER)
    plugin = Column(CAST_STRING)
    file = Column(CAST_STRING)
    line_start = Column(CAST_INTEGER)
    line_end = Column(CAST_INTEGER)
    severity = Column(CAST_INTEGER)
    message = Column(CAST_STRING)
    hash = Column(CAST_STRING)
    create_date = Column(CAST_DATETIME)

    @staticmethod
    def generate_hash(
        plugin: str,
        file: str | None,
        line_start: int | None,
        line_end: int | None,
        severity: int,
        message: str,
    ) -> str:
        payload = "|".join(
            str(part) for part in (plugin, file or "", line_start or 0, line_end or 0, severity, message)
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def get_severity_name(self) -> str:
        names = {
            self.SEVERITY_CRITICAL: "critical",
            self.SEVERITY_HIGH: "high",
            self.SEVERITY_NORMAL: "normal",
            self.SEVERITY_LOW: "low",
        }
        return names.get(cast(int, self.severity), "unknown")

    def get_build(self) -> Build | None:
        if self.build_id is None:
            return None
        store = self._require_registry().get("Build")
        return cast(Build | None, store.get_by_primary_key(cast(int, self.build_id)))


class BuildMeta(Record):
    build_id = Column(CAST_INTEGER)
    meta_key = Column(CAST_STRING)
    meta_value = Column(CAST_ARRAY)
