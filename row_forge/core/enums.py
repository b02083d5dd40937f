"""Enumerations shared across row_forge."""

from __future__ import annotations

from enum import Enum


class DatabaseBackend(Enum):
    """Supported database backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class CommandKind(Enum):
    """How the command text is interpreted."""

    TEXT = "text"
    PROCEDURE = "procedure"


class ExecutionPhase(Enum):
    """Where a driver failure happened."""

    HEADERS = "establishing result headers"
    ROWS = "reading rows"


class RowErrorPolicy(Enum):
    """What to do with a row whose values fail conversion."""

    ABORT = "abort"
    SKIP = "skip"


class ParameterType(Enum):
    """Provider type tag inferred for a parameter slot."""

    UNSET = "unset"
    INT = "int"
    BIGINT = "bigint"
    BOOL = "bool"
    FLOAT = "float"
    DECIMAL = "decimal"
    STRING = "string"
    BINARY = "binary"
    DATETIME = "datetime"
    DATETIME_OFFSET = "datetime_offset"
    DATE = "date"
    TIME = "time"
    UUID = "uuid"
    OBJECT = "object"
