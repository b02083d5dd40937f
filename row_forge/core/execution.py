"""Command execution: materialize, first-row, stream and non-query paths.

Every path acquires the connection through its manager (opening it only if
it is closed, and closing it afterwards only in that case), opens a reader,
resolves the row factory for the reader's schema and maps rows. Readers are
always closed in ``finally`` blocks, so errors, early exit from a stream and
task cancellation all release the cursor.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from typing import TYPE_CHECKING, Any, TypeVar

from row_forge.core.enums import ExecutionPhase, RowErrorPolicy
from row_forge.core.exceptions import ConversionError, RowForgeError, SqlExecutionError
from row_forge.core.reader import (
    AsyncRowReader,
    RowReader,
    open_reader,
    open_reader_async,
)
from row_forge.mapping.cache import get_factory
from row_forge.mapping.protocol import RowFactory
from row_forge.utils.logging import get_logger

if TYPE_CHECKING:
    from row_forge.core.command import Command
    from row_forge.core.connection import AsyncConnectionManager, ConnectionManager

T = TypeVar("T")

logger = get_logger(__name__)

_SKIPPED: Any = object()


def _resolve(
    model: type[T],
    reader: RowReader | AsyncRowReader,
    factory: RowFactory[T] | None,
) -> RowFactory[T]:
    if factory is not None:
        return factory
    return get_factory(model, reader.columns, reader.command_text)


def _skipping(factory: RowFactory[T]) -> RowFactory[T]:
    """Wrap ``factory`` so rows failing conversion return the skip marker."""

    def mapped(record: Any) -> T:
        try:
            return factory(record)
        except ConversionError as e:
            logger.warning("Skipping row: %s", e)
            return _SKIPPED  # type: ignore[no-any-return]

    return mapped


def _row_mapper(factory: RowFactory[T], policy: RowErrorPolicy) -> RowFactory[T]:
    if policy is RowErrorPolicy.SKIP:
        return _skipping(factory)
    return factory


class _Collector:
    """Result list pre-sized from the previous execution's row count."""

    __slots__ = ("items", "count", "capacity")

    def __init__(self, capacity_hint: int) -> None:
        self.capacity = max(capacity_hint, 0)
        self.items: list[Any] = [None] * self.capacity
        self.count = 0

    def add(self, item: Any) -> None:
        if item is _SKIPPED:
            return
        if self.count < self.capacity:
            self.items[self.count] = item
        else:
            self.items.append(item)
        self.count += 1

    def result(self) -> list[Any]:
        del self.items[self.count :]
        return self.items


# --- Sync ---


def read_list(
    manager: ConnectionManager,
    command: Command,
    model: type[T],
    *,
    factory: RowFactory[T] | None = None,
    capacity_hint: int = 0,
    policy: RowErrorPolicy = RowErrorPolicy.ABORT,
) -> tuple[list[T], RowFactory[T] | None]:
    """Execute ``command`` and map every row.

    Returns the rows and the factory used, so callers can keep it for the
    next execution.
    """
    with manager.acquire() as connection:
        reader = open_reader(manager.adapter, connection, command)
        try:
            if not reader.read():
                return [], factory
            factory = _resolve(model, reader, factory)
            mapper = _row_mapper(factory, policy)
            collector = _Collector(capacity_hint)
            collector.add(mapper(reader.record))  # type: ignore[arg-type]
            while reader.read():
                collector.add(mapper(reader.record))  # type: ignore[arg-type]
        finally:
            reader.close()
    return collector.result(), factory


def read_first(
    manager: ConnectionManager,
    command: Command,
    model: type[T],
    *,
    factory: RowFactory[T] | None = None,
) -> tuple[T | None, RowFactory[T] | None]:
    """Execute ``command`` and map only its first row.

    The reader is closed after the first row without reading further.
    """
    with manager.acquire() as connection:
        reader = open_reader(manager.adapter, connection, command)
        try:
            if not reader.read():
                return None, factory
            factory = _resolve(model, reader, factory)
            return factory(reader.record), factory  # type: ignore[arg-type]
        finally:
            reader.close()


def stream(
    manager: ConnectionManager,
    command: Command,
    model: type[T],
    *,
    policy: RowErrorPolicy = RowErrorPolicy.ABORT,
) -> Iterator[T]:
    """Lazily yield mapped rows; nothing executes until the first ``next()``."""
    with manager.acquire() as connection:
        reader = open_reader(manager.adapter, connection, command)
        try:
            mapper: RowFactory[T] | None = None
            while reader.read():
                if mapper is None:
                    mapper = _row_mapper(_resolve(model, reader, None), policy)
                item = mapper(reader.record)  # type: ignore[arg-type]
                if item is not _SKIPPED:
                    yield item
        finally:
            reader.close()


def execute_non_query(manager: ConnectionManager, command: Command) -> int:
    """Execute a command that returns no rows, commit, and return the row count."""
    with manager.acquire() as connection:
        adapter = manager.adapter
        try:
            cursor = adapter.execute(connection, command.sql, command.driver_params())
        except RowForgeError:
            raise
        except Exception as e:
            raise SqlExecutionError(command.text, ExecutionPhase.HEADERS, str(e)) from e
        try:
            adapter.commit(connection)
            return cursor.rowcount  # type: ignore[no-any-return]
        except Exception as e:
            raise SqlExecutionError(command.text, ExecutionPhase.HEADERS, str(e)) from e
        finally:
            cursor.close()


# --- Async ---


async def read_list_async(
    manager: AsyncConnectionManager,
    command: Command,
    model: type[T],
    *,
    factory: RowFactory[T] | None = None,
    capacity_hint: int = 0,
    policy: RowErrorPolicy = RowErrorPolicy.ABORT,
) -> tuple[list[T], RowFactory[T] | None]:
    """Async variant of :func:`read_list`."""
    async with manager.acquire() as connection:
        reader = await open_reader_async(manager.adapter, connection, command)
        try:
            if not await reader.read():
                return [], factory
            factory = _resolve(model, reader, factory)
            mapper = _row_mapper(factory, policy)
            collector = _Collector(capacity_hint)
            collector.add(mapper(reader.record))  # type: ignore[arg-type]
            while await reader.read():
                collector.add(mapper(reader.record))  # type: ignore[arg-type]
        finally:
            await reader.close()
    return collector.result(), factory


async def read_first_async(
    manager: AsyncConnectionManager,
    command: Command,
    model: type[T],
    *,
    factory: RowFactory[T] | None = None,
) -> tuple[T | None, RowFactory[T] | None]:
    """Async variant of :func:`read_first`."""
    async with manager.acquire() as connection:
        reader = await open_reader_async(manager.adapter, connection, command)
        try:
            if not await reader.read():
                return None, factory
            factory = _resolve(model, reader, factory)
            return factory(reader.record), factory  # type: ignore[arg-type]
        finally:
            await reader.close()


async def stream_async(
    manager: AsyncConnectionManager,
    command: Command,
    model: type[T],
    *,
    policy: RowErrorPolicy = RowErrorPolicy.ABORT,
) -> AsyncIterator[T]:
    """Async variant of :func:`stream`."""
    async with manager.acquire() as connection:
        reader = await open_reader_async(manager.adapter, connection, command)
        try:
            mapper: RowFactory[T] | None = None
            while await reader.read():
                if mapper is None:
                    mapper = _row_mapper(_resolve(model, reader, None), policy)
                item = mapper(reader.record)  # type: ignore[arg-type]
                if item is not _SKIPPED:
                    yield item
        finally:
            await reader.close()


async def execute_non_query_async(manager: AsyncConnectionManager, command: Command) -> int:
    """Async variant of :func:`execute_non_query`."""
    async with manager.acquire() as connection:
        adapter = manager.adapter
        try:
            cursor = await adapter.execute_async(connection, command.sql, command.driver_params())
        except RowForgeError:
            raise
        except Exception as e:
            raise SqlExecutionError(command.text, ExecutionPhase.HEADERS, str(e)) from e
        try:
            await adapter.commit_async(connection)
            return cursor.rowcount  # type: ignore[no-any-return]
        except Exception as e:
            raise SqlExecutionError(command.text, ExecutionPhase.HEADERS, str(e)) from e
        finally:
            await cursor.close()
