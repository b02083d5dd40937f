"""row_forge exception hierarchy.

All exceptions are row_forge-specific. Raw driver exceptions are never
exposed to callers; they are chained as ``__cause__``.
"""

from __future__ import annotations

from typing import Any

from row_forge.core.enums import ExecutionPhase


class RowForgeError(Exception):
    """Base exception for all row_forge errors."""


# --- Registry ---


class RegistryError(RowForgeError):
    """Base for SQL registry errors."""


class QueryNotFoundError(RegistryError):
    """Raised when a named query cannot be found in the registry."""

    def __init__(self, query_name: str) -> None:
        self.query_name = query_name
        super().__init__(f"Query not found: '{query_name}'")


class DuplicateQueryError(RegistryError):
    """Raised when two SQL files resolve to the same namespace key."""

    def __init__(self, query_name: str, path_a: str, path_b: str) -> None:
        self.query_name = query_name
        super().__init__(f"Duplicate query name '{query_name}': {path_a} and {path_b}")


# --- Execution ---


class ExecutionError(RowForgeError):
    """Base for query execution errors."""


class SqlExecutionError(ExecutionError):
    """Raised when the driver fails while executing a command.

    ``phase`` tells whether the failure happened while establishing the
    result headers (execute + description) or while iterating rows.
    """

    def __init__(self, command_text: str, phase: ExecutionPhase, detail: str) -> None:
        self.command_text = command_text
        self.phase = phase
        super().__init__(f"Failed while {phase.value} for '{_shorten(command_text)}': {detail}")


class ParameterBindingError(ExecutionError):
    """Raised on parameter binding failures."""

    def __init__(self, command_text: str, detail: str) -> None:
        self.command_text = command_text
        super().__init__(f"Parameter binding error for '{_shorten(command_text)}': {detail}")


class QueryDisposedError(RowForgeError):
    """Raised when a compiled query is used after it was closed."""

    def __init__(self, command_text: str) -> None:
        self.command_text = command_text
        super().__init__(f"Compiled query '{_shorten(command_text)}' has been closed")


# --- Mapping ---


class MappingError(RowForgeError):
    """Base for mapping errors."""


class ConfigurationError(MappingError):
    """Raised when a target type cannot be used for row mapping."""

    def __init__(self, target_class: type, detail: str) -> None:
        self.target_class = target_class
        super().__init__(f"Cannot map rows to {target_class.__qualname__}: {detail}")


class ConversionError(MappingError):
    """Raised when a column value cannot be converted to its field type."""

    def __init__(
        self,
        target_class: type,
        field_name: str,
        column_name: str,
        value: Any,
        field_type: Any,
    ) -> None:
        self.target_class = target_class
        self.field_name = field_name
        self.column_name = column_name
        self.value = value
        self.field_type = field_type
        type_name = getattr(field_type, "__qualname__", repr(field_type))
        super().__init__(
            f"Cannot convert column '{column_name}' value {value!r} "
            f"to {type_name} for field '{target_class.__qualname__}.{field_name}'"
        )


# --- Adapter ---


class AdapterError(RowForgeError):
    """Base for adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised on connection failures."""


def _shorten(text: str, limit: int = 80) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
