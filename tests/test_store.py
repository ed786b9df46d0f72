import sqlite3
from datetime import datetime
from pathlib import Path
from typing import cast

import pytest

from store.base import Store
from store.config import DatabaseConfig
from store.database import DatabaseManager
from store.exceptions import ConfigurationError, InvalidArgumentError
from store.models import Build, BuildMeta, Project
from store.registry import StoreRegistry
from store.stores import BuildErrorStore, BuildMetaStore, BuildStore, ProjectStore


@pytest.fixture
def registry(tmp_path: Path):
    manager = DatabaseManager(DatabaseConfig(path=str(tmp_path / "store.db")))
    yield StoreRegistry(manager)
    manager.close()


def _project_store(registry: StoreRegistry) -> ProjectStore:
    return cast(ProjectStore, registry.get("Project"))


def _new_project(registry: StoreRegistry, name: str, status: int = 1) -> Project:
    project = Project(registry)
    project.name = name
    project.status = status
    return project


def _count_statements(registry: StoreRegistry) -> list[str]:
    statements: list[str] = []
    connection = registry.database_manager.get_connection("write")
    connection.set_trace_callback(statements.append)
    return statements


def test_insert_assigns_id_and_refetches(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    saved = store.save(_new_project(registry, "demo"))

    assert saved is not None
    assert saved.get_id() is not None and saved.get_id() > 0
    assert saved.name == "demo"
    assert saved.status == 1
    assert saved.get_modified() == set()

    fetched = store.get_by_primary_key(cast(int, saved.get_id()))
    assert fetched is not None
    assert fetched.name == "demo"


def test_insert_round_trips_coerced_values(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    project = _new_project(registry, "typed")
    project.environments = ["dev", "prod"]
    project.build_config = {"test": {"php_cpd": {"ignore": ["vendor"]}}}
    project.archived = True
    project.create_date = datetime(2026, 5, 6, 7, 8, 9, 123)

    saved = store.save(project)
    assert saved is not None
    fetched = store.get_by_primary_key(cast(int, saved.get_id()))
    assert fetched is not None
    assert fetched.environments == ["dev", "prod"]
    assert fetched.build_config == {"test": {"php_cpd": {"ignore": ["vendor"]}}}
    assert fetched.archived is True
    assert fetched.create_date == datetime(2026, 5, 6, 7, 8, 9)


def test_update_writes_only_modified_fields(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    saved = cast(Project, store.save(_new_project(registry, "before", status=1)))

    stale = Project(registry, {"id": saved.get_id(), "name": "before", "status": 1})
    other = Project(registry, {"id": saved.get_id(), "name": "before", "status": 1})

    other.status = 0
    assert store.save(other) is not None

    stale.name = "after"
    updated = store.save(stale)

    assert updated is not None
    assert updated.get_id() == saved.get_id()
    assert updated.name == "after"
    assert updated.status == 0


def test_update_without_changes_returns_same_record(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    saved = cast(Project, store.save(_new_project(registry, "demo")))
    statements = _count_statements(registry)

    assert store.save(saved) is saved
    assert statements == []


def test_insert_without_changes_returns_same_record(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    project = Project(registry)
    assert store.save(project) is project
    assert store.get_where().count == 0


def test_failed_insert_returns_transient_record(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    project = Project(registry)
    project.status = 1

    result = store.save(project)

    assert result is project
    assert result.get_id() is None


def test_duplicate_meta_key_insert_is_not_raised(registry: StoreRegistry) -> None:
    project = cast(Project, _project_store(registry).save(_new_project(registry, "demo")))
    build = Build(registry)
    build.project_id = project.get_id()
    build = cast(Build, registry.get("Build").save(build))

    meta_store = cast(BuildMetaStore, registry.get("BuildMeta"))
    first = BuildMeta(registry)
    first.build_id = build.get_id()
    first.meta_key = "php_cpd-warnings"
    first.meta_value = 1
    assert cast(BuildMeta, meta_store.save(first)).get_id() is not None

    duplicate = BuildMeta(registry)
    duplicate.build_id = build.get_id()
    duplicate.meta_key = "php_cpd-warnings"
    duplicate.meta_value = 2
    assert meta_store.save(duplicate) is duplicate
    assert duplicate.get_id() is None


def test_wrong_record_type_is_rejected_before_sql(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    build = Build(registry)
    build.project_id = 1
    statements = _count_statements(registry)

    with pytest.raises(InvalidArgumentError):
        store.save(build)  # type: ignore[arg-type]
    with pytest.raises(InvalidArgumentError):
        store.delete(build)  # type: ignore[arg-type]
    assert statements == []


def test_get_where_pages_and_counts(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    for index in range(5):
        store.save(_new_project(registry, f"active-{index}", status=1))
    store.save(_new_project(registry, "inactive", status=0))

    result = store.get_where({"status": 1}, limit=2, offset=0, order={"id": "ASC"})

    assert result.count == 5
    assert len(result.items) == 2
    ids = [cast(int, item.get_id()) for item in result.items]
    assert ids == sorted(ids)
    assert all(isinstance(item, Project) for item in result.items)

    second_page = store.get_where({"status": 1}, limit=2, offset=2, order={"id": "ASC"})
    assert second_page.count == 5
    assert [item.get_id() for item in second_page.items][0] > ids[-1]

    unlimited = store.get_where({"status": 1}, limit=0)
    assert len(unlimited.items) == 5


def test_get_where_with_or_connective(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    store.save(_new_project(registry, "one"))
    store.save(_new_project(registry, "two"))
    store.save(_new_project(registry, "three"))

    result = store.get_where({"name": "one", "projects.name": "three"}, connective="OR")
    assert result.count == 2
    assert sorted(item.name for item in result.items) == ["one", "three"]


def test_get_where_ignores_non_scalar_filters(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    store.save(_new_project(registry, "one"))
    store.save(_new_project(registry, "two"))

    result = store.get_where({"name": ["one"]})
    assert result.count == 2


def test_get_where_rejects_empty_field_name(registry: StoreRegistry) -> None:
    with pytest.raises(InvalidArgumentError):
        _project_store(registry).get_where({"": 1})
    with pytest.raises(InvalidArgumentError):
        _project_store(registry).get_where(order={"": "ASC"})


def test_delete_is_idempotent(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    saved = cast(Project, store.save(_new_project(registry, "doomed")))

    assert store.delete(saved) is True
    assert store.delete(saved) is True
    assert store.get_by_primary_key(cast(int, saved.get_id())) is None


def test_missing_primary_key_binding_fails_construction(registry: StoreRegistry) -> None:
    class KeylessStore(Store[Project]):
        model = Project
        table_name = "projects"

        def get_by_primary_key(self, key: int, use_connection: str = "read") -> Project | None:
            return None

    with pytest.raises(ConfigurationError):
        KeylessStore(registry.database_manager, registry)


def test_registry_caches_stores(registry: StoreRegistry) -> None:
    assert registry.get("Build") is registry.get("Build")
    assert isinstance(registry.get("BuildError"), BuildErrorStore)
    with pytest.raises(InvalidArgumentError):
        registry.get("Nope")


def test_build_lookups_and_meta(registry: StoreRegistry) -> None:
    project = cast(Project, _project_store(registry).save(_new_project(registry, "demo")))
    build_store = cast(BuildStore, registry.get("Build"))
    for status in (Build.STATUS_SUCCESS, Build.STATUS_FAILED):
        build = Build(registry)
        build.project_id = project.get_id()
        build.status = status
        build.extra = {"trigger": "push"}
        build_store.save(build)

    builds = build_store.get_by_project_id(cast(int, project.get_id()))
    assert [b.status for b in builds] == [Build.STATUS_FAILED, Build.STATUS_SUCCESS]
    latest_success = build_store.get_latest_build(cast(int, project.get_id()), Build.STATUS_SUCCESS)
    assert latest_success is not None
    assert latest_success.extra == {"trigger": "push"}

    parent = latest_success.get_project()
    assert parent is not None and parent.name == "demo"

    latest_success.store_meta("php_cpd-warnings", 3)
    latest_success.store_meta("php_cpd-warnings", 4)
    meta_store = cast(BuildMetaStore, registry.get("BuildMeta"))
    assert meta_store.get_value(cast(int, latest_success.get_id()), "php_cpd-warnings") == 4
    assert meta_store.get_where({"build_id": latest_success.get_id()}).count == 1


def test_report_error_persists_build_error(registry: StoreRegistry) -> None:
    project = cast(Project, _project_store(registry).save(_new_project(registry, "demo")))
    build = Build(registry)
    build.project_id = project.get_id()
    build = cast(Build, registry.get("Build").save(build))

    error = build.report_error("php_cpd", "dup", 2, "src/a.php", 10, 20)
    assert error.get_id() is not None
    assert error.get_build() is not None

    error_store = cast(BuildErrorStore, registry.get("BuildError"))
    errors = error_store.get_by_build_id(cast(int, build.get_id()), plugin="php_cpd")
    assert [(e.file, e.line_start, e.line_end) for e in errors] == [("src/a.php", 10, 20)]
    assert error_store.get_error_total_for_build(cast(int, build.get_id())) == 1


def test_writes_are_read_back_through_write_connection(tmp_path: Path) -> None:
    write_path = tmp_path / "primary.db"
    read_path = tmp_path / "replica.db"
    DatabaseManager(DatabaseConfig(path=str(read_path))).close()
    manager = DatabaseManager(DatabaseConfig(path=str(write_path), read_path=str(read_path)))
    registry = StoreRegistry(manager)
    store = _project_store(registry)

    saved = store.save(_new_project(registry, "demo"))

    assert saved is not None and saved.name == "demo"
    assert store.get_where().count == 0
    assert store.get_by_primary_key(cast(int, saved.get_id()), "write") is not None
    manager.close()


def test_update_re_reads_through_write_connection(tmp_path: Path) -> None:
    write_path = tmp_path / "primary.db"
    read_path = tmp_path / "replica.db"
    DatabaseManager(DatabaseConfig(path=str(read_path))).close()
    manager = DatabaseManager(DatabaseConfig(path=str(write_path), read_path=str(read_path)))
    registry = StoreRegistry(manager)
    store = _project_store(registry)
    saved = cast(Project, store.save(_new_project(registry, "before")))
    record_id = cast(int, saved.get_id())

    saved.name = "after"
    updated = store.save(saved)

    assert updated is not None
    assert updated is not saved
    assert updated.name == "after"
    assert store.get_by_primary_key(record_id) is None
    stored = store.get_by_primary_key(record_id, "write")
    assert stored is not None and stored.name == "after"
    manager.close()


def test_project_lookups_by_name_and_archive_flag(registry: StoreRegistry) -> None:
    store = _project_store(registry)
    store.save(_new_project(registry, "beta"))
    archived = _new_project(registry, "alpha")
    archived.archived = True
    store.save(archived)

    found = store.get_by_name("beta")
    assert found is not None and found.name == "beta"
    assert store.get_by_name("missing") is None
    assert [p.name for p in store.get_all()] == ["beta"]
    assert [p.name for p in store.get_all(include_archived=True)] == ["alpha", "beta"]


def test_rejected_update_releases_write_lock(tmp_path: Path) -> None:
    db_path = tmp_path / "store.db"
    manager = DatabaseManager(DatabaseConfig(path=str(db_path)))
    registry = StoreRegistry(manager)
    store = _project_store(registry)
    saved = cast(Project, store.save(_new_project(registry, "demo")))

    saved.name = None
    with pytest.raises(sqlite3.IntegrityError):
        store.save(saved)

    assert manager.get_connection("write").in_transaction is False
    other = sqlite3.connect(db_path, timeout=0)
    try:
        with other:
            _ = other.execute("INSERT INTO projects (name) VALUES (?)", ("other",))
    finally:
        other.close()
    assert store.get_where().count == 2
    manager.close()
