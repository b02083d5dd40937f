"""Database adapter protocols.

Every adapter module MUST implement these protocols so the execution layer
can stay driver-agnostic. Adapters own everything driver-specific: how to
connect, placeholder style, how column types are reported, how parameter
values are converted for binding, and how a procedure call is spelled.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from row_forge.core.enums import DatabaseBackend, ParameterType

if TYPE_CHECKING:
    from row_forge.core.connection import ConnectionConfig
    from row_forge.core.reader import ColumnInfo


@runtime_checkable
class SyncAdapter(Protocol):
    """Synchronous database adapter protocol."""

    @property
    def backend(self) -> DatabaseBackend: ...

    @property
    def paramstyle(self) -> str:
        """Parameter binding style: 'named' (:name) or 'pyformat' (%(name)s)."""
        ...

    def connect(self, config: ConnectionConfig) -> Any:
        """Open a new connection."""
        ...

    def close_connection(self, connection: Any) -> None: ...

    def is_open(self, connection: Any) -> bool: ...

    def commit(self, connection: Any) -> None: ...

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute SQL and return a cursor-like object yielding tuple rows."""
        ...

    def describe(self, cursor: Any, first_row: Sequence[Any] | None) -> tuple[ColumnInfo, ...]:
        """Column metadata for an executed cursor."""
        ...

    def bind_value(self, value: Any, type_tag: ParameterType) -> Any:
        """Convert a non-null parameter value to what the driver accepts."""
        ...

    def procedure_sql(
        self, name: str, parameter_names: Sequence[str], *, returns_rows: bool = True
    ) -> str:
        """Render a stored procedure call using :name placeholders."""
        ...


@runtime_checkable
class AsyncAdapter(Protocol):
    """Asynchronous database adapter protocol."""

    @property
    def backend(self) -> DatabaseBackend: ...

    @property
    def paramstyle(self) -> str:
        """Parameter binding style: 'named' (:name) or 'pyformat' (%(name)s)."""
        ...

    async def connect_async(self, config: ConnectionConfig) -> Any:
        """Open a new connection."""
        ...

    async def close_connection_async(self, connection: Any) -> None: ...

    def is_open(self, connection: Any) -> bool: ...

    async def commit_async(self, connection: Any) -> None: ...

    async def execute_async(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute SQL asynchronously and return a cursor-like object."""
        ...

    def describe(self, cursor: Any, first_row: Sequence[Any] | None) -> tuple[ColumnInfo, ...]:
        """Column metadata for an executed cursor."""
        ...

    def bind_value(self, value: Any, type_tag: ParameterType) -> Any:
        """Convert a non-null parameter value to what the driver accepts."""
        ...

    def procedure_sql(
        self, name: str, parameter_names: Sequence[str], *, returns_rows: bool = True
    ) -> str:
        """Render a stored procedure call using :name placeholders."""
        ...
