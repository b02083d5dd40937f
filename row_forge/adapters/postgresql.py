"""PostgreSQL adapter - sync and async using psycopg (v3+).

Column types come from the type OIDs psycopg reports in
``cursor.description``; OIDs outside the built-in table report ``object``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from row_forge.core.connection import ConnectionConfig
from row_forge.core.enums import DatabaseBackend, ParameterType
from row_forge.core.exceptions import AdapterError
from row_forge.core.reader import ColumnInfo

# Built-in type OIDs (pg_type.oid) -> Python type psycopg returns
_OID_TYPES: dict[int, type] = {
    16: bool,
    17: bytes,
    18: str,  # char
    19: str,  # name
    20: int,  # int8
    21: int,  # int2
    23: int,  # int4
    25: str,  # text
    26: int,  # oid
    700: float,  # float4
    701: float,  # float8
    1042: str,  # bpchar
    1043: str,  # varchar
    1082: date,
    1083: time,
    1114: datetime,  # timestamp
    1184: datetime,  # timestamptz
    1186: timedelta,  # interval
    1266: time,  # timetz
    1700: Decimal,  # numeric
    2950: UUID,
}

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*)?$")


def _build_conninfo(config: ConnectionConfig) -> str:
    """Build a libpq connection string from config fields."""
    parts: list[str] = []
    if config.host is not None:
        parts.append(f"host={config.host}")
    if config.port is not None:
        parts.append(f"port={config.port}")
    if config.user is not None:
        parts.append(f"user={config.user}")
    if config.password is not None:
        parts.append(f"password={config.password}")
    parts.append(f"dbname={config.database}")
    return " ".join(parts)


def _describe(cursor: Any, first_row: Sequence[Any] | None) -> tuple[ColumnInfo, ...]:
    if cursor.description is None:
        return ()
    return tuple(
        ColumnInfo(column.name, _OID_TYPES.get(column.type_code, object), column.null_ok)
        for column in cursor.description
    )


def _procedure_sql(name: str, parameter_names: Sequence[str], returns_rows: bool) -> str:
    if not _IDENTIFIER.match(name):
        raise AdapterError(f"Invalid procedure name: {name!r}")
    arguments = ", ".join(f":{parameter}" for parameter in parameter_names)
    if returns_rows:
        return f"SELECT * FROM {name}({arguments})"
    return f"CALL {name}({arguments})"


class PostgresqlSyncAdapter:
    """Synchronous PostgreSQL adapter using psycopg (v3+)."""

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend.POSTGRESQL

    @property
    def paramstyle(self) -> str:
        return "pyformat"

    def connect(self, config: ConnectionConfig) -> Any:
        import psycopg

        return psycopg.connect(_build_conninfo(config), **config.extra)

    def close_connection(self, connection: Any) -> None:
        connection.close()

    def is_open(self, connection: Any) -> bool:
        return not connection.closed

    def commit(self, connection: Any) -> None:
        connection.commit()

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        from psycopg.rows import tuple_row

        cursor = connection.cursor(row_factory=tuple_row)
        return cursor.execute(sql, params)

    def describe(self, cursor: Any, first_row: Sequence[Any] | None) -> tuple[ColumnInfo, ...]:
        return _describe(cursor, first_row)

    def bind_value(self, value: Any, type_tag: ParameterType) -> Any:
        return value

    def procedure_sql(
        self, name: str, parameter_names: Sequence[str], *, returns_rows: bool = True
    ) -> str:
        return _procedure_sql(name, parameter_names, returns_rows)


class PostgresqlAsyncAdapter:
    """Asynchronous PostgreSQL adapter using psycopg (v3+) async support."""

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend.POSTGRESQL

    @property
    def paramstyle(self) -> str:
        return "pyformat"

    async def connect_async(self, config: ConnectionConfig) -> Any:
        import psycopg

        return await psycopg.AsyncConnection.connect(_build_conninfo(config), **config.extra)

    async def close_connection_async(self, connection: Any) -> None:
        await connection.close()

    def is_open(self, connection: Any) -> bool:
        return not connection.closed

    async def commit_async(self, connection: Any) -> None:
        await connection.commit()

    async def execute_async(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        from psycopg.rows import tuple_row

        cursor = connection.cursor(row_factory=tuple_row)
        return await cursor.execute(sql, params)

    def describe(self, cursor: Any, first_row: Sequence[Any] | None) -> tuple[ColumnInfo, ...]:
        return _describe(cursor, first_row)

    def bind_value(self, value: Any, type_tag: ParameterType) -> Any:
        return value

    def procedure_sql(
        self, name: str, parameter_names: Sequence[str], *, returns_rows: bool = True
    ) -> str:
        return _procedure_sql(name, parameter_names, returns_rows)
