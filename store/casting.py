"""
Conversion between typed record values and storage scalars.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import date, datetime
from typing import cast as typing_cast

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

CAST_STRING = "string"
CAST_INTEGER = "integer"
CAST_BOOLEAN = "boolean"
CAST_DATETIME = "datetime"
CAST_ARRAY = "array"
CAST_NEWLINE = "newline"
CAST_DEFAULT = "default"

CAST_TYPES = (
    CAST_STRING,
    CAST_INTEGER,
    CAST_BOOLEAN,
    CAST_DATETIME,
    CAST_ARRAY,
    CAST_NEWLINE,
    CAST_DEFAULT,
)


def cast_to_database(cast: str, value: object) -> object:
    """Return a value that can be bound as a query parameter.

    Strings and None are never touched. Unknown tags, and values a tag cannot
    format, pass through for the driver to handle.
    """
    if value is None or isinstance(value, str):
        return value

    if cast == CAST_DATETIME:
        if isinstance(value, (datetime, date)):
            return value.strftime(DATETIME_FORMAT)
        return value
    if cast == CAST_ARRAY:
        try:
            return json.dumps(value, separators=(",", ":"), default=str)
        except (TypeError, ValueError):
            # non-string keys or circular references
            return value
    if cast == CAST_NEWLINE:
        if isinstance(value, (list, tuple, set, frozenset)):
            items = typing_cast(Iterable[object], value)
            return "\n".join(str(item) for item in items)
        return value
    return value


def cast_from_database(cast: str, value: object) -> object:
    """Turn a raw column value back into the record's typed value."""
    if value is None:
        return None

    if cast == CAST_INTEGER:
        return _to_int(value)
    if cast == CAST_BOOLEAN:
        if isinstance(value, str):
            return value.strip().lower() not in ("", "0", "false")
        return bool(value)
    if cast == CAST_STRING:
        return value if isinstance(value, str) else str(value)
    if not isinstance(value, str):
        return value
    if cast == CAST_DATETIME:
        try:
            return datetime.strptime(value, DATETIME_FORMAT)
        except ValueError:
            return value
    if cast == CAST_ARRAY:
        try:
            return typing_cast(object, json.loads(value))
        except json.JSONDecodeError:
            return value
    if cast == CAST_NEWLINE:
        return value.split("\n") if value else []
    return value


def _to_int(value: object) -> object:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return value
    return value
