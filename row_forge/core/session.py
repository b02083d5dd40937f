"""Convenience API.

A Session wraps one connection manager and maps query results to typed
objects in a single call. ``fetch_all`` reuses a cached Command and row
factory per (session, text, kind, model) and only rebinds parameter
values on later calls. ``fetch_first``, ``stream`` and non-query calls
build a fresh command each time. ``compile`` hands out a CompiledQuery for
hot paths that bind parameters positionally.

Procedure variants take a procedure name instead of SQL text. A name found
in the session's SQLRegistry runs the registered SQL; otherwise the adapter
renders a native stored procedure call.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from row_forge.core.cache import ExecutionCache, get_execution_cache
from row_forge.core.command import Command
from row_forge.core.compiled import AsyncCompiledQuery, CompiledQuery
from row_forge.core.connection import (
    AsyncConnectionManager,
    ConnectionConfig,
    ConnectionManager,
)
from row_forge.core.enums import CommandKind, RowErrorPolicy
from row_forge.core.execution import (
    execute_non_query,
    execute_non_query_async,
    read_first,
    read_first_async,
    read_list,
    read_list_async,
    stream,
    stream_async,
)
from row_forge.core.registry import SQLRegistry

if TYPE_CHECKING:
    from types import TracebackType

T = TypeVar("T")

Params = Mapping[str, Any]

_ABORT = RowErrorPolicy.ABORT


class _SessionBase:
    def __init__(
        self,
        connection_manager: Any,
        registry: SQLRegistry | None,
        execution_cache: ExecutionCache | None,
    ) -> None:
        self._connection_manager = connection_manager
        self._registry = registry
        self._execution_cache = execution_cache or get_execution_cache()

    @property
    def connection_manager(self) -> Any:
        return self._connection_manager

    @property
    def registry(self) -> SQLRegistry | None:
        return self._registry

    @property
    def cached_command_count(self) -> int:
        """Commands held for this session by the execution cache."""
        return self._execution_cache.entry_count(self._connection_manager)

    def clear_cache(self) -> None:
        """Close and drop this session's cached commands."""
        self._execution_cache.clear(self._connection_manager)

    def _command(
        self,
        text: str,
        kind: CommandKind,
        params: Params | None,
        *,
        returns_rows: bool = True,
    ) -> Command:
        return Command.with_values(
            self._connection_manager.adapter,
            text,
            kind,
            params,
            registry=self._registry,
            returns_rows=returns_rows,
        )

    def _positional(self, text: str, kind: CommandKind, parameter_names: tuple[str, ...]) -> Command:
        return Command(
            self._connection_manager.adapter,
            text,
            kind,
            parameter_names,
            registry=self._registry,
        )

    def _entry(self, text: str, kind: CommandKind, model: type[T], params: Params | None) -> Any:
        entry, created = self._execution_cache.get_or_create(
            self._connection_manager,
            text,
            kind,
            model,
            lambda: self._command(text, kind, params),
        )
        if not created and params:
            entry.command.update(params)
        return entry


class Session(_SessionBase):
    """Synchronous convenience API over one connection.

    Usage:
        with Session.from_config(ConnectionConfig(driver="sqlite", database="app.db")) as s:
            employees = s.fetch_all(Employee, "SELECT * FROM employee WHERE dept = :dept",
                                    {"dept": 1})
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        registry: SQLRegistry | None = None,
        *,
        execution_cache: ExecutionCache | None = None,
    ) -> None:
        super().__init__(connection_manager, registry, execution_cache)

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        registry: SQLRegistry | None = None,
        *,
        connection: Any = None,
        execution_cache: ExecutionCache | None = None,
    ) -> Session:
        """Create a Session from a ConnectionConfig.

        Args:
            config: ConnectionConfig instance.
            registry: Optional SQLRegistry for procedure names.
            connection: An already-open driver connection to adopt.
            execution_cache: Cache to use instead of the process-wide one.
        """
        return cls(
            ConnectionManager(config, connection),
            registry,
            execution_cache=execution_cache,
        )

    def open(self) -> None:
        """Open the connection and keep it open until ``close()``."""
        self._connection_manager.ensure_open()

    def close(self) -> None:
        self.clear_cache()
        self._connection_manager.close()

    def __enter__(self) -> Session:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # --- Reads ---

    def _fetch_all(
        self,
        model: type[T],
        text: str,
        kind: CommandKind,
        params: Params | None,
        policy: RowErrorPolicy,
    ) -> list[T]:
        entry = self._entry(text, kind, model, params)
        results, entry.factory = read_list(
            self._connection_manager,
            entry.command,
            model,
            factory=entry.factory,
            capacity_hint=entry.last_row_count,
            policy=policy,
        )
        entry.last_row_count = len(results)
        return results

    def fetch_all(
        self,
        model: type[T],
        sql: str,
        params: Params | None = None,
        *,
        policy: RowErrorPolicy = _ABORT,
    ) -> list[T]:
        """Execute ``sql`` and map every row to ``model``."""
        return self._fetch_all(model, sql, CommandKind.TEXT, params, policy)

    def fetch_all_procedure(
        self,
        model: type[T],
        name: str,
        params: Params | None = None,
        *,
        policy: RowErrorPolicy = _ABORT,
    ) -> list[T]:
        return self._fetch_all(model, name, CommandKind.PROCEDURE, params, policy)

    def fetch_first(self, model: type[T], sql: str, params: Params | None = None) -> T | None:
        """Map the first row of ``sql``, or return None for an empty result."""
        command = self._command(sql, CommandKind.TEXT, params)
        try:
            return read_first(self._connection_manager, command, model)[0]
        finally:
            command.close()

    def fetch_first_procedure(
        self, model: type[T], name: str, params: Params | None = None
    ) -> T | None:
        command = self._command(name, CommandKind.PROCEDURE, params)
        try:
            return read_first(self._connection_manager, command, model)[0]
        finally:
            command.close()

    def stream(
        self,
        model: type[T],
        sql: str,
        params: Params | None = None,
        *,
        policy: RowErrorPolicy = _ABORT,
    ) -> Iterator[T]:
        """Lazily yield mapped rows without buffering the result."""
        command = self._command(sql, CommandKind.TEXT, params)
        return stream(self._connection_manager, command, model, policy=policy)

    def stream_procedure(
        self,
        model: type[T],
        name: str,
        params: Params | None = None,
        *,
        policy: RowErrorPolicy = _ABORT,
    ) -> Iterator[T]:
        command = self._command(name, CommandKind.PROCEDURE, params)
        return stream(self._connection_manager, command, model, policy=policy)

    # --- Non-query ---

    def execute(self, sql: str, params: Params | None = None) -> int:
        """Run a statement that returns no rows; commit and return the row count."""
        command = self._command(sql, CommandKind.TEXT, params)
        try:
            return execute_non_query(self._connection_manager, command)
        finally:
            command.close()

    def call(self, name: str, params: Params | None = None) -> int:
        """Run a procedure that returns no rows; commit and return the row count."""
        command = self._command(name, CommandKind.PROCEDURE, params, returns_rows=False)
        try:
            return execute_non_query(self._connection_manager, command)
        finally:
            command.close()

    # --- Compiled ---

    def compile(
        self,
        model: type[T],
        sql: str,
        *parameter_names: str,
        policy: RowErrorPolicy = _ABORT,
    ) -> CompiledQuery[T]:
        """Prepare ``sql`` for repeated execution with positional parameters.

        ``parameter_names`` give the placeholder for each position, e.g.
        ``session.compile(Employee, "... WHERE id = :id", "id")``.
        """
        command = self._positional(sql, CommandKind.TEXT, parameter_names)
        return CompiledQuery(self._connection_manager, command, model, policy)

    def compile_procedure(
        self,
        model: type[T],
        name: str,
        *parameter_names: str,
        policy: RowErrorPolicy = _ABORT,
    ) -> CompiledQuery[T]:
        command = self._positional(name, CommandKind.PROCEDURE, parameter_names)
        return CompiledQuery(self._connection_manager, command, model, policy)


class AsyncSession(_SessionBase):
    """Asynchronous convenience API over one connection."""

    def __init__(
        self,
        connection_manager: AsyncConnectionManager,
        registry: SQLRegistry | None = None,
        *,
        execution_cache: ExecutionCache | None = None,
    ) -> None:
        super().__init__(connection_manager, registry, execution_cache)

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        registry: SQLRegistry | None = None,
        *,
        connection: Any = None,
        execution_cache: ExecutionCache | None = None,
    ) -> AsyncSession:
        """Create an AsyncSession from a ConnectionConfig."""
        return cls(
            AsyncConnectionManager(config, connection),
            registry,
            execution_cache=execution_cache,
        )

    async def open(self) -> None:
        await self._connection_manager.ensure_open()

    async def close(self) -> None:
        self.clear_cache()
        await self._connection_manager.close()

    async def __aenter__(self) -> AsyncSession:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # --- Reads ---

    async def _fetch_all(
        self,
        model: type[T],
        text: str,
        kind: CommandKind,
        params: Params | None,
        policy: RowErrorPolicy,
    ) -> list[T]:
        entry = self._entry(text, kind, model, params)
        results, entry.factory = await read_list_async(
            self._connection_manager,
            entry.command,
            model,
            factory=entry.factory,
            capacity_hint=entry.last_row_count,
            policy=policy,
        )
        entry.last_row_count = len(results)
        return results

    async def fetch_all(
        self,
        model: type[T],
        sql: str,
        params: Params | None = None,
        *,
        policy: RowErrorPolicy = _ABORT,
    ) -> list[T]:
        return await self._fetch_all(model, sql, CommandKind.TEXT, params, policy)

    async def fetch_all_procedure(
        self,
        model: type[T],
        name: str,
        params: Params | None = None,
        *,
        policy: RowErrorPolicy = _ABORT,
    ) -> list[T]:
        return await self._fetch_all(model, name, CommandKind.PROCEDURE, params, policy)

    async def fetch_first(
        self, model: type[T], sql: str, params: Params | None = None
    ) -> T | None:
        command = self._command(sql, CommandKind.TEXT, params)
        try:
            return (await read_first_async(self._connection_manager, command, model))[0]
        finally:
            command.close()

    async def fetch_first_procedure(
        self, model: type[T], name: str, params: Params | None = None
    ) -> T | None:
        command = self._command(name, CommandKind.PROCEDURE, params)
        try:
            return (await read_first_async(self._connection_manager, command, model))[0]
        finally:
            command.close()

    def stream(
        self,
        model: type[T],
        sql: str,
        params: Params | None = None,
        *,
        policy: RowErrorPolicy = _ABORT,
    ) -> AsyncIterator[T]:
        """Lazily yield mapped rows; iterate with ``async for``."""
        command = self._command(sql, CommandKind.TEXT, params)
        return stream_async(self._connection_manager, command, model, policy=policy)

    def stream_procedure(
        self,
        model: type[T],
        name: str,
        params: Params | None = None,
        *,
        policy: RowErrorPolicy = _ABORT,
    ) -> AsyncIterator[T]:
        command = self._command(name, CommandKind.PROCEDURE, params)
        return stream_async(self._connection_manager, command, model, policy=policy)

    # --- Non-query ---

    async def execute(self, sql: str, params: Params | None = None) -> int:
        command = self._command(sql, CommandKind.TEXT, params)
        try:
            return await execute_non_query_async(self._connection_manager, command)
        finally:
            command.close()

    async def call(self, name: str, params: Params | None = None) -> int:
        command = self._command(name, CommandKind.PROCEDURE, params, returns_rows=False)
        try:
            return await execute_non_query_async(self._connection_manager, command)
        finally:
            command.close()

    # --- Compiled ---

    def compile(
        self,
        model: type[T],
        sql: str,
        *parameter_names: str,
        policy: RowErrorPolicy = _ABORT,
    ) -> AsyncCompiledQuery[T]:
        command = self._positional(sql, CommandKind.TEXT, parameter_names)
        return AsyncCompiledQuery(self._connection_manager, command, model, policy)

    def compile_procedure(
        self,
        model: type[T],
        name: str,
        *parameter_names: str,
        policy: RowErrorPolicy = _ABORT,
    ) -> AsyncCompiledQuery[T]:
        command = self._positional(name, CommandKind.PROCEDURE, parameter_names)
        return AsyncCompiledQuery(self._connection_manager, command, model, policy)
