"""Forward-only readers over one executed result set.

A reader is opened by running a command: the driver executes, the first
row is peeked so adapters that cannot report column types (SQLite) can
infer them, and the column metadata is fixed for the reader's lifetime.
Driver failures are re-raised as SqlExecutionError tagged with the phase
in which they happened.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from row_forge.core.enums import ExecutionPhase
from row_forge.core.exceptions import RowForgeError, SqlExecutionError

if TYPE_CHECKING:
    from row_forge.core.command import Command

_UNREAD = object()


@dataclass(frozen=True)
class ColumnInfo:
    """Name, reported Python type and nullability of one result column.

    ``nullable`` is None when the driver does not say.
    """

    name: str
    type: type = object
    nullable: bool | None = None


class _ReaderBase:
    def __init__(
        self,
        cursor: Any,
        columns: Sequence[ColumnInfo],
        first_row: Any,
        command_text: str,
    ) -> None:
        self._cursor = cursor
        self.columns: tuple[ColumnInfo, ...] = tuple(columns)
        self.command_text = command_text
        self._pending = first_row
        self._exhausted = first_row is None
        self.record: Sequence[Any] | None = None
        self.closed = False

    @property
    def column_count(self) -> int:
        return len(self.columns)

    def column_name(self, ordinal: int) -> str:
        return self.columns[ordinal].name

    def column_type(self, ordinal: int) -> type:
        return self.columns[ordinal].type

    def column_nullable(self, ordinal: int) -> bool | None:
        return self.columns[ordinal].nullable

    def is_null(self, ordinal: int) -> bool:
        assert self.record is not None, "read() has not produced a row"
        return self.record[ordinal] is None

    def get_value(self, ordinal: int) -> Any:
        assert self.record is not None, "read() has not produced a row"
        return self.record[ordinal]

    def _take_pending(self) -> bool:
        row, self._pending = self._pending, None
        self.record = row
        return True

    def _row_failed(self, error: Exception) -> SqlExecutionError:
        return SqlExecutionError(self.command_text, ExecutionPhase.ROWS, str(error))


class RowReader(_ReaderBase):
    """Synchronous reader; ``read()`` advances to the next row."""

    def read(self) -> bool:
        if self._pending is not None:
            return self._take_pending()
        if self._exhausted:
            self.record = None
            return False
        try:
            row = self._cursor.fetchone()
        except Exception as e:
            raise self._row_failed(e) from e
        if row is None:
            self._exhausted = True
            self.record = None
            return False
        self.record = row
        return True

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._cursor.close()


class AsyncRowReader(_ReaderBase):
    """Asynchronous reader; ``await read()`` advances to the next row."""

    async def read(self) -> bool:
        if self._pending is not None:
            return self._take_pending()
        if self._exhausted:
            self.record = None
            return False
        try:
            row = await self._cursor.fetchone()
        except Exception as e:
            raise self._row_failed(e) from e
        if row is None:
            self._exhausted = True
            self.record = None
            return False
        self.record = row
        return True

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self._cursor.close()


def _headers_failed(command: Command, error: Exception) -> SqlExecutionError:
    return SqlExecutionError(command.text, ExecutionPhase.HEADERS, str(error))


def _rows_failed(command: Command, error: Exception) -> SqlExecutionError:
    return SqlExecutionError(command.text, ExecutionPhase.ROWS, str(error))


def open_reader(adapter: Any, connection: Any, command: Command) -> RowReader:
    """Execute ``command`` and return a reader positioned before the first row.

    Raises:
        SqlExecutionError: With phase HEADERS if the driver fails before the
            schema is known, ROWS if fetching the first row fails.
    """
    try:
        cursor = adapter.execute(connection, command.sql, command.driver_params())
    except RowForgeError:
        raise
    except Exception as e:
        raise _headers_failed(command, e) from e

    first_row = None
    if cursor.description is not None:
        try:
            first_row = cursor.fetchone()
        except Exception as e:
            cursor.close()
            raise _rows_failed(command, e) from e

    try:
        columns = adapter.describe(cursor, first_row)
    except RowForgeError:
        cursor.close()
        raise
    except Exception as e:
        cursor.close()
        raise _headers_failed(command, e) from e
    return RowReader(cursor, columns, first_row, command.text)


async def open_reader_async(adapter: Any, connection: Any, command: Command) -> AsyncRowReader:
    """Async variant of :func:`open_reader`."""
    try:
        cursor = await adapter.execute_async(connection, command.sql, command.driver_params())
    except RowForgeError:
        raise
    except Exception as e:
        raise _headers_failed(command, e) from e

    first_row = None
    if cursor.description is not None:
        try:
            first_row = await cursor.fetchone()
        except Exception as e:
            await cursor.close()
            raise _rows_failed(command, e) from e

    try:
        columns = adapter.describe(cursor, first_row)
    except RowForgeError:
        await cursor.close()
        raise
    except Exception as e:
        await cursor.close()
        raise _headers_failed(command, e) from e
    return AsyncRowReader(cursor, columns, first_row, command.text)
