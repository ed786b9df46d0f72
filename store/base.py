"""
Generic single-table store.

A concrete store binds one record kind to one table and supplies its own
primary-key lookup. Everything else, listing, saving and deleting, lives here.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Generic, TypeVar, cast

from .casting import cast_to_database
from .database import READ, WRITE, DatabaseManager
from .exceptions import ConfigurationError, InvalidArgumentError
from .models import Record
from .query import QueryBuilder

if TYPE_CHECKING:
    from .registry import StoreRegistry

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=Record)


@dataclass
class QueryResult(Generic[RecordT]):
    items: list[RecordT] = field(default_factory=list)
    count: int = 0


class Store(ABC, Generic[RecordT]):
    """Persistence for one record kind stored in one table.

    Subclasses set ``model``, ``table_name`` and ``primary_key`` and implement
    ``get_by_primary_key``.
    """

    model: ClassVar[type[Record] | None] = None
    table_name: ClassVar[str] = ""
    primary_key: ClassVar[str | None] = None

    def __init__(
        self,
        database_manager: DatabaseManager,
        store_registry: StoreRegistry | None = None,
    ) -> None:
        if not self.primary_key:
            raise ConfigurationError("Save not implemented for this store.")
        if self.model is None or not self.table_name:
            raise ConfigurationError(
                f"{type(self).__name__} must bind a model and a table name"
            )
        self.database_manager: DatabaseManager = database_manager
        self.store_registry: StoreRegistry | None = store_registry
        self.query_builder: QueryBuilder = QueryBuilder(self.table_name)

    @abstractmethod
    def get_by_primary_key(self, key: int, use_connection: str = READ) -> RecordT | None:
        """Return the record stored under ``key`` or None."""

    def get_where(
        self,
        where: Mapping[str, object] | None = None,
        limit: int = 25,
        offset: int = 0,
        order: Mapping[str, str] | None = None,
        connective: str = "AND",
    ) -> QueryResult[RecordT]:
        statement = self.query_builder.build_select(
            where=where,
            order=order,
            limit=limit,
            offset=offset,
            connective=connective,
        )
        connection = self.database_manager.get_connection(READ)

        count_row = cast(
            sqlite3.Row | None,
            connection.execute(statement.count_sql, statement.params).fetchone(),
        )
        count = int(count_row["count"]) if count_row is not None else 0

        rows = connection.execute(statement.sql, statement.params).fetchall()
        items = [self._make_record(cast(sqlite3.Row, row)) for row in rows]
        return QueryResult(items=items, count=count)

    def save(self, record: RecordT) -> RecordT | None:
        """Insert or update ``record`` and return the stored version.

        The input record comes back untouched when it has no modified fields,
        or when the database refuses the insert.
        """
        self._check_model(record)
        data = self._get_data(record)

        if record.get_id() is not None:
            return self._save_by_update(record, data)
        return self._save_by_insert(record, data)

    def _save_by_update(self, record: RecordT, data: dict[str, object]) -> RecordT | None:
        statement = self.query_builder.build_update(
            cast(str, self.primary_key), record.get_id(), data
        )
        if statement is None:
            return record

        connection = self.database_manager.get_connection(WRITE)
        logger.debug("Updating %s %s", self.table_name, record.get_id())
        with connection:
            _ = connection.execute(statement.sql, statement.params)

        return self.get_by_primary_key(cast(int, record.get_id()), WRITE)

    def _save_by_insert(self, record: RecordT, data: dict[str, object]) -> RecordT | None:
        statement = self.query_builder.build_insert(data)
        if statement is None:
            return record

        connection = self.database_manager.get_connection(WRITE)
        try:
            cursor = connection.execute(statement.sql, statement.params)
            connection.commit()
        except sqlite3.IntegrityError as exc:
            connection.rollback()
            logger.warning("Insert into %s failed: %s", self.table_name, exc)
            return record

        new_id = cursor.lastrowid
        if new_id is None:
            return record
        logger.debug("Inserted %s %s", self.table_name, new_id)
        return self.get_by_primary_key(new_id, WRITE)

    def delete(self, record: RecordT) -> bool:
        self._check_model(record)
        statement = self.query_builder.build_delete(cast(str, self.primary_key), record.get_id())
        connection = self.database_manager.get_connection(WRITE)
        with connection:
            _ = connection.execute(statement.sql, statement.params)
        return True

    def _fetch_one(
        self,
        sql: str,
        params: Sequence[object] | Mapping[str, object],
        use_connection: str = READ,
    ) -> RecordT | None:
        connection = self.database_manager.get_connection(use_connection)
        row = cast(sqlite3.Row | None, connection.execute(sql, params).fetchone())
        if row is None:
            return None
        return self._make_record(row)

    def _make_record(self, row: sqlite3.Row) -> RecordT:
        model = cast(type[RecordT], self.model)
        return model(self.store_registry, dict(row))

    def _check_model(self, record: Record) -> None:
        model = cast(type[Record], self.model)
        if not isinstance(record, model):
            raise InvalidArgumentError(
                f"{type(record).__name__} is an invalid model type for this store."
            )

    def _get_data(self, record: Record) -> dict[str, object]:
        """Coerced values of the fields modified since load."""
        modified = record.get_modified()
        data: dict[str, object] = {}
        for column, value in record.get_data_array().items():
            if column not in modified:
                continue
            data[column] = cast_to_database(record.get_cast(column), value)
        return data
