"""
SQLite database utilities for the store module.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from types import TracebackType

from .config import DatabaseConfig
from .exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

READ = "read"
WRITE = "write"
ROLES = (READ, WRITE)

MEMORY_PATH = ":memory:"


SCHEMA_SQL = """
CREATE TABLE projects (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  status INTEGER NOT NULL DEFAULT 1,
  reference TEXT,
  default_branch TEXT,
  environments TEXT,
  build_config TEXT,
  archived INTEGER NOT NULL DEFAULT 0,
  create_date TIMESTAMP
);

CREATE TABLE builds (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  project_id INTEGER NOT NULL,
  commit_id TEXT,
  status INTEGER NOT NULL DEFAULT 0,
  log TEXT,
  branch TEXT,
  create_date TIMESTAMP,
  start_date TIMESTAMP,
  finish_date TIMESTAMP,
  committer_email TEXT,
  commit_message TEXT,
  extra TEXT,
  errors_total INTEGER,
  FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
);

CREATE TABLE build_errors (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  build_id INTEGER NOT NULL,
  plugin TEXT NOT NULL,
  file TEXT,
  line_start INTEGER,
  line_end INTEGER,
  severity INTEGER NOT NULL,
  message TEXT NOT NULL,
  hash TEXT,
  create_date TIMESTAMP,
  FOREIGN KEY (build_id) REFERENCES builds(id) ON DELETE CASCADE
);

CREATE TABLE build_metas (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  build_id INTEGER NOT NULL,
  meta_key TEXT NOT NULL,
  meta_value TEXT,
  FOREIGN KEY (build_id) REFERENCES builds(id) ON DELETE CASCADE,
  UNIQUE(build_id, meta_key)
);

CREATE INDEX idx_builds_project ON builds(project_id);
CREATE INDEX idx_build_errors_build ON build_errors(build_id);
"""

_IDEMPOTENT_SCHEMA_SQL = (
    SCHEMA_SQL.replace("CREATE TABLE", "CREATE TABLE IF NOT EXISTS")
    .replace("CREATE INDEX", "CREATE INDEX IF NOT EXISTS")
)


def initialize_database(db_path: str) -> None:
    """Create the SQLite database and schema if needed."""
    if db_path == MEMORY_PATH:
        raise InvalidArgumentError("Use initialize_schema() for in-memory databases")
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(str(path))
    try:
        initialize_schema(connection)
    finally:
        connection.close()


def initialize_schema(connection: sqlite3.Connection) -> None:
    _ = connection.executescript(_IDEMPOTENT_SCHEMA_SQL)
    connection.commit()


def connect(db_path: str, timeout_seconds: float = 5.0) -> sqlite3.Connection:
    """Open a SQLite connection with sane defaults."""
    connection = sqlite3.connect(db_path, timeout=timeout_seconds)
    connection.row_factory = sqlite3.Row
    _ = connection.execute("PRAGMA foreign_keys = ON")
    return connection


class DatabaseManager:
    """Hand out the read and write connections.

    Connections are opened on first use and kept for the manager's lifetime.
    Both roles share one connection when they point at the same database.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self.config: DatabaseConfig = config
        self._connections: dict[str, sqlite3.Connection] = {}
        if config.initialize and config.path != MEMORY_PATH:
            initialize_database(config.path)

    @classmethod
    def for_path(cls, db_path: str) -> "DatabaseManager":
        return cls(DatabaseConfig(path=db_path))

    def _path_for(self, role: str) -> str:
        if role == WRITE:
            return self.config.path
        return self.config.read_path or self.config.path

    def get_connection(self, role: str = READ) -> sqlite3.Connection:
        if role not in ROLES:
            raise InvalidArgumentError(f"Unknown connection role: {role!r}")
        if role in self._connections:
            return self._connections[role]

        path = self._path_for(role)
        for other_role, connection in self._connections.items():
            if self._path_for(other_role) == path:
                self._connections[role] = connection
                return connection

        logger.debug("Opening %s connection to %s", role, path)
        connection = connect(path, timeout_seconds=self.config.timeout_seconds)
        if path == MEMORY_PATH and self.config.initialize:
            initialize_schema(connection)
        self._connections[role] = connection
        return connection

    def close(self) -> None:
        closed: set[int] = set()
        for connection in self._connections.values():
            if id(connection) not in closed:
                connection.close()
                closed.add(id(connection))
        self._connections.clear()

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
