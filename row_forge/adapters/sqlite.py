"""SQLite adapter - sync (sqlite3 stdlib) and async (aiosqlite).

SQLite does not report column types on a cursor, so ``describe`` infers
them from the Python types of the first row. A NULL in the first row, or an
empty result, reports ``object`` for that column and the row factory falls
back to its generic conversion path.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from typing import Any

import aiosqlite

from row_forge.core.connection import ConnectionConfig
from row_forge.core.enums import DatabaseBackend, ParameterType
from row_forge.core.exceptions import AdapterError
from row_forge.core.reader import ColumnInfo


def _connect_kwargs(config: ConnectionConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"check_same_thread": False}
    kwargs.update(config.extra)
    return kwargs


def _describe(cursor: Any, first_row: Sequence[Any] | None) -> tuple[ColumnInfo, ...]:
    if cursor.description is None:
        return ()
    columns: list[ColumnInfo] = []
    for ordinal, entry in enumerate(cursor.description):
        value = first_row[ordinal] if first_row is not None else None
        column_type = type(value) if value is not None else object
        columns.append(ColumnInfo(entry[0], column_type))
    return tuple(columns)


def _bind_value(value: Any, type_tag: ParameterType) -> Any:
    if type_tag in (ParameterType.UUID, ParameterType.DECIMAL):
        return str(value)
    if type_tag in (ParameterType.DATETIME, ParameterType.DATETIME_OFFSET):
        return value.isoformat(" ")
    if type_tag in (ParameterType.DATE, ParameterType.TIME):
        return value.isoformat()
    if type_tag is ParameterType.BINARY and not isinstance(value, bytes):
        return bytes(value)
    return value


def _procedure_sql(name: str) -> str:
    raise AdapterError(
        f"SQLite has no stored procedures; register '{name}' as a query in the "
        "session's SQLRegistry"
    )


def _is_open(connection: Any) -> bool:
    try:
        connection.total_changes
    except (sqlite3.ProgrammingError, ValueError):
        # sqlite3 raises ProgrammingError, aiosqlite ValueError, once closed
        return False
    return True


class SqliteSyncAdapter:
    """Synchronous SQLite adapter using stdlib sqlite3."""

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend.SQLITE

    @property
    def paramstyle(self) -> str:
        return "named"

    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        return sqlite3.connect(config.database, **_connect_kwargs(config))

    def close_connection(self, connection: sqlite3.Connection) -> None:
        connection.close()

    def is_open(self, connection: sqlite3.Connection) -> bool:
        return _is_open(connection)

    def commit(self, connection: sqlite3.Connection) -> None:
        connection.commit()

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> sqlite3.Cursor:
        """Execute SQL and return a cursor."""
        cursor = connection.cursor()
        # Adopted connections may carry a custom row factory
        cursor.row_factory = None
        return cursor.execute(sql, params or {})

    def describe(self, cursor: Any, first_row: Sequence[Any] | None) -> tuple[ColumnInfo, ...]:
        return _describe(cursor, first_row)

    def bind_value(self, value: Any, type_tag: ParameterType) -> Any:
        return _bind_value(value, type_tag)

    def procedure_sql(
        self, name: str, parameter_names: Sequence[str], *, returns_rows: bool = True
    ) -> str:
        return _procedure_sql(name)


class SqliteAsyncAdapter:
    """Asynchronous SQLite adapter using aiosqlite."""

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend.SQLITE

    @property
    def paramstyle(self) -> str:
        return "named"

    async def connect_async(self, config: ConnectionConfig) -> aiosqlite.Connection:
        return await aiosqlite.connect(config.database, **_connect_kwargs(config))

    async def close_connection_async(self, connection: aiosqlite.Connection) -> None:
        await connection.close()

    def is_open(self, connection: aiosqlite.Connection) -> bool:
        return _is_open(connection)

    async def commit_async(self, connection: aiosqlite.Connection) -> None:
        await connection.commit()

    async def execute_async(
        self,
        connection: aiosqlite.Connection,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> aiosqlite.Cursor:
        """Execute SQL asynchronously and return a cursor."""
        cursor = await connection.cursor()
        cursor.row_factory = None
        return await cursor.execute(sql, params or {})

    def describe(self, cursor: Any, first_row: Sequence[Any] | None) -> tuple[ColumnInfo, ...]:
        return _describe(cursor, first_row)

    def bind_value(self, value: Any, type_tag: ParameterType) -> Any:
        return _bind_value(value, type_tag)

    def procedure_sql(
        self, name: str, parameter_names: Sequence[str], *, returns_rows: bool = True
    ) -> str:
        return _procedure_sql(name)


__all__ = ["SqliteSyncAdapter", "SqliteAsyncAdapter"]
