"""
Table mappers for the build server records.
"""

from __future__ import annotations

from typing import cast

from .base import Store
from .database import READ
from .models import Build, BuildError, BuildMeta, Project


class ProjectStore(Store[Project]):
    model = Project
    table_name = "projects"
    primary_key = "id"

    def get_by_primary_key(self, key: int, use_connection: str = READ) -> Project | None:
        return self.get_by_id(key, use_connection)

    def get_by_id(self, project_id: int, use_connection: str = READ) -> Project | None:
        return self._fetch_one(
            'SELECT * FROM "projects" WHERE "id" = ? LIMIT 1',
            (project_id,),
            use_connection,
        )

    def get_by_name(self, name: str, use_connection: str = READ) -> Project | None:
        return self._fetch_one(
            'SELECT * FROM "projects" WHERE "name" = ? ORDER BY "id" LIMIT 1',
            (name,),
            use_connection,
        )

    def get_all(self, include_archived: bool = False) -> list[Project]:
        where = {} if include_archived else {"archived": 0}
        result = self.get_where(where, limit=0, order={"name": "ASC"})
        return result.items


class BuildStore(Store[Build]):
    model = Build
    table_name = "builds"
    primary_key = "id"

    def get_by_primary_key(self, key: int, use_connection: str = READ) -> Build | None:
        return self.get_by_id(key, use_connection)

    def get_by_id(self, build_id: int, use_connection: str = READ) -> Build | None:
        return self._fetch_one(
            'SELECT * FROM "builds" WHERE "id" = ? LIMIT 1',
            (build_id,),
            use_connection,
        )

    def get_by_project_id(self, project_id: int, limit: int = 25, offset: int = 0) -> list[Build]:
        result = self.get_where(
            {"project_id": project_id},
            limit=limit,
            offset=offset,
            order={"id": "DESC"},
        )
        return result.items

    def get_latest_build(self, project_id: int, status: int | None = None) -> Build | None:
        where: dict[str, object] = {"project_id": project_id}
        if status is not None:
            where["status"] = status
        result = self.get_where(where, limit=1, order={"id": "DESC"})
        return result.items[0] if result.items else None


class BuildErrorStore(Store[BuildError]):
    model = BuildError
    table_name = "build_errors"
    primary_key = "id"

    def get_by_primary_key(self, key: int, use_connection: str = READ) -> BuildError | None:
        return self.get_by_id(key, use_connection)

    def get_by_id(self, error_id: int, use_connection: str = READ) -> BuildError | None:
        return self._fetch_one(
            'SELECT * FROM "build_errors" WHERE "id" = ? LIMIT 1',
            (error_id,),
            use_connection,
        )

    def get_by_build_id(
        self,
        build_id: int,
        plugin: str | None = None,
        severity: int | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> list[BuildError]:
        where: dict[str, object] = {"build_id": build_id}
        if plugin is not None:
            where["plugin"] = plugin
        if severity is not None:
            where["severity"] = severity
        result = self.get_where(
            where,
            limit=limit,
            offset=offset,
            order={"severity": "ASC", "id": "ASC"},
        )
        return result.items

    def get_error_total_for_build(self, build_id: int, plugin: str | None = None) -> int:
        where: dict[str, object] = {"build_id": build_id}
        if plugin is not None:
            where["plugin"] = plugin
        return self.get_where(where, limit=1).count


class BuildMetaStore(Store[BuildMeta]):
    model = BuildMeta
    table_name = "build_metas"
    primary_key = "id"

    def get_by_primary_key(self, key: int, use_connection: str = READ) -> BuildMeta | None:
        return self.get_by_id(key, use_connection)

    def get_by_id(self, meta_id: int, use_connection: str = READ) -> BuildMeta | None:
        return self._fetch_one(
            'SELECT * FROM "build_metas" WHERE "id" = ? LIMIT 1',
            (meta_id,),
            use_connection,
        )

    def get_by_key(self, build_id: int, key: str, use_connection: str = READ) -> BuildMeta | None:
        return self._fetch_one(
            'SELECT * FROM "build_metas" WHERE "build_id" = ? AND "meta_key" = ? LIMIT 1',
            (build_id, key),
            use_connection,
        )

    def get_value(self, build_id: int, key: str) -> object:
        meta = self.get_by_key(build_id, key)
        return cast(object, meta.meta_value) if meta is not None else None
