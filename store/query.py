"""
Parameterized SQL rendering for a single table.

Values always travel as bound parameters. Only identifiers (the bound table,
checked field names, record columns) and fixed keywords are written into the
SQL text.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from .exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

CONNECTIVES = ("AND", "OR")
DIRECTIONS = ("ASC", "DESC")

_NON_SCALAR_TYPES = (Mapping, list, tuple, set, frozenset)


@dataclass(frozen=True)
class SelectStatement:
    sql: str
    count_sql: str
    params: list[object] = field(default_factory=list)


@dataclass(frozen=True)
class WriteStatement:
    sql: str
    params: dict[str, object] = field(default_factory=dict)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def is_scalar(value: object) -> bool:
    return not isinstance(value, _NON_SCALAR_TYPES)


class QueryBuilder:
    """Render statements against one table."""

    def __init__(self, table_name: str) -> None:
        if not table_name:
            raise InvalidArgumentError("A table name is required")
        self.table_name: str = table_name

    @property
    def table(self) -> str:
        return quote_identifier(self.table_name)

    def field_check(self, field_name: str) -> str:
        """Qualify a bare field with the table; dotted names pass through."""
        if not field_name:
            raise InvalidArgumentError("You cannot have an empty field name.")
        if "." not in field_name:
            return f"{self.table}.{quote_identifier(field_name)}"
        return field_name

    def build_select(
        self,
        where: Mapping[str, object] | None = None,
        order: Mapping[str, str] | None = None,
        limit: int = 0,
        offset: int = 0,
        connective: str = "AND",
    ) -> SelectStatement:
        joiner = _check_connective(connective)
        _check_page_value("limit", limit)
        _check_page_value("offset", offset)

        conditions: list[str] = []
        params: list[object] = []
        for key, value in (where or {}).items():
            column = self.field_check(key)
            if not is_scalar(value):
                logger.warning(
                    "Filter on %s ignored: non-scalar values are not supported in WHERE",
                    key,
                )
                continue
            conditions.append(f"{column} = ?")
            params.append(value)

        sql = f"SELECT * FROM {self.table}"
        count_sql = f'SELECT COUNT(*) AS "count" FROM {self.table}'
        if conditions:
            where_sql = " WHERE (" + f" {joiner} ".join(conditions) + ")"
            sql += where_sql
            count_sql += where_sql

        if order:
            orders = [
                f"{self.field_check(key)} {_check_direction(direction)}"
                for key, direction in order.items()
            ]
            sql += " ORDER BY " + ", ".join(orders)

        if limit:
            sql += f" LIMIT {limit}"
        elif offset:
            sql += " LIMIT -1"
        if offset:
            sql += f" OFFSET {offset}"

        logger.debug("Rendered select: %s %s", sql, params)
        return SelectStatement(sql=sql, count_sql=count_sql, params=params)

    def build_insert(self, data: Mapping[str, object]) -> WriteStatement | None:
        """Return None when there is nothing to persist."""
        if not data:
            return None
        columns = [quote_identifier(column) for column in data]
        placeholders = [f":{column}" for column in data]
        sql = (
            f"INSERT INTO {self.table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)})"
        )
        return WriteStatement(sql=sql, params=dict(data))

    def build_update(
        self,
        primary_key: str,
        key_value: object,
        data: Mapping[str, object],
    ) -> WriteStatement | None:
        """Return None when there is nothing to persist."""
        if not data:
            return None
        updates = [f"{quote_identifier(column)} = :{column}" for column in data]
        sql = (
            f"UPDATE {self.table} SET {', '.join(updates)} "
            f"WHERE {quote_identifier(primary_key)} = :primaryKey"
        )
        params = dict(data)
        params["primaryKey"] = key_value
        return WriteStatement(sql=sql, params=params)

    def build_delete(self, primary_key: str, key_value: object) -> WriteStatement:
        sql = f"DELETE FROM {self.table} WHERE {quote_identifier(primary_key)} = :primaryKey"
        return WriteStatement(sql=sql, params={"primaryKey": key_value})


def _check_connective(connective: str) -> str:
    normalized = connective.strip().upper()
    if normalized not in CONNECTIVES:
        raise InvalidArgumentError(f"Unsupported connective: {connective!r}")
    return normalized


def _check_direction(direction: str) -> str:
    normalized = str(direction).strip().upper()
    if normalized not in DIRECTIONS:
        raise InvalidArgumentError(f"Unsupported sort direction: {direction!r}")
    return normalized


def _check_page_value(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgumentError(f"{name} must be a non-negative integer")
