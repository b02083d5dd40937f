"""Reusable compiled queries.

A compiled query owns one Command and, after its first execution, the row
factory for its result schema. Re-executing only rebinds parameter values
and maps rows; the result list is pre-sized from the previous row count.
A compiled query is not safe for concurrent use.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from row_forge.core.enums import RowErrorPolicy
from row_forge.core.exceptions import QueryDisposedError
from row_forge.core.execution import (
    read_first,
    read_first_async,
    read_list,
    read_list_async,
    stream,
    stream_async,
)
from row_forge.mapping.protocol import RowFactory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

    from row_forge.core.command import Command
    from row_forge.core.connection import AsyncConnectionManager, ConnectionManager

T = TypeVar("T")


class _CompiledBase(Generic[T]):
    def __init__(self, command: Command, model: type[T], policy: RowErrorPolicy) -> None:
        self._command = command
        self.model = model
        self.policy = policy
        self._factory: RowFactory[T] | None = None
        self._last_count = 0

    @property
    def text(self) -> str:
        return self._command.text

    @property
    def parameter_count(self) -> int:
        return len(self._command.slots)

    @property
    def closed(self) -> bool:
        return self._command.closed

    @property
    def last_row_count(self) -> int:
        """Rows returned by the previous ``fetch_all``."""
        return self._last_count

    def _check_open(self) -> None:
        if self._command.closed:
            raise QueryDisposedError(self._command.text)

    def set_parameter(self, index: int, value: Any) -> None:
        """Bind ``value`` to the parameter at ``index`` (0-based).

        Raises:
            QueryDisposedError: If the query is closed.
            ParameterBindingError: If ``index`` is out of range.
        """
        self._check_open()
        self._command.set_value(index, value)

    def close(self) -> None:
        """Release the command. Idempotent."""
        self._command.close()
        self._factory = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}[{self.model.__qualname__}]({self._command!r})"


class CompiledQuery(_CompiledBase[T]):
    """Synchronous compiled query. Use as a context manager to close it."""

    def __init__(
        self,
        manager: ConnectionManager,
        command: Command,
        model: type[T],
        policy: RowErrorPolicy = RowErrorPolicy.ABORT,
    ) -> None:
        super().__init__(command, model, policy)
        self._manager = manager

    def fetch_all(self) -> list[T]:
        self._check_open()
        results, factory = read_list(
            self._manager,
            self._command,
            self.model,
            factory=self._factory,
            capacity_hint=self._last_count,
            policy=self.policy,
        )
        self._factory = factory
        self._last_count = len(results)
        return results

    def fetch_first(self) -> T | None:
        self._check_open()
        result, self._factory = read_first(
            self._manager, self._command, self.model, factory=self._factory
        )
        return result

    def stream(self) -> Iterator[T]:
        self._check_open()
        return stream(self._manager, self._command, self.model, policy=self.policy)

    def __enter__(self) -> CompiledQuery[T]:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class AsyncCompiledQuery(_CompiledBase[T]):
    """Asynchronous compiled query. Use ``async with`` to close it."""

    def __init__(
        self,
        manager: AsyncConnectionManager,
        command: Command,
        model: type[T],
        policy: RowErrorPolicy = RowErrorPolicy.ABORT,
    ) -> None:
        super().__init__(command, model, policy)
        self._manager = manager

    async def fetch_all(self) -> list[T]:
        self._check_open()
        results, factory = await read_list_async(
            self._manager,
            self._command,
            self.model,
            factory=self._factory,
            capacity_hint=self._last_count,
            policy=self.policy,
        )
        self._factory = factory
        self._last_count = len(results)
        return results

    async def fetch_first(self) -> T | None:
        self._check_open()
        result, self._factory = await read_first_async(
            self._manager, self._command, self.model, factory=self._factory
        )
        return result

    def stream(self) -> AsyncIterator[T]:
        self._check_open()
        return stream_async(self._manager, self._command, self.model, policy=self.policy)

    async def __aenter__(self) -> AsyncCompiledQuery[T]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
