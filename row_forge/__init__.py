"""row_forge - schema-driven row to object mapping for DB-API drivers."""

from __future__ import annotations

from row_forge.config import RowForgeSettings, get_settings
from row_forge.core.cache import ExecutionCache
from row_forge.core.compiled import AsyncCompiledQuery, CompiledQuery
from row_forge.core.connection import (
    AsyncConnectionManager,
    ConnectionConfig,
    ConnectionManager,
)
from row_forge.core.enums import (
    CommandKind,
    DatabaseBackend,
    ExecutionPhase,
    ParameterType,
    RowErrorPolicy,
)
from row_forge.core.exceptions import (
    AdapterError,
    ConfigurationError,
    ConnectionError,  # noqa: A004
    ConversionError,
    DuplicateQueryError,
    ExecutionError,
    MappingError,
    ParameterBindingError,
    QueryDisposedError,
    QueryNotFoundError,
    RegistryError,
    RowForgeError,
    SqlExecutionError,
)
from row_forge.core.reader import ColumnInfo
from row_forge.core.registry import SQLRegistry
from row_forge.core.session import AsyncSession, Session
from row_forge.mapping.cache import RowFactoryCache, clear_caches
from row_forge.mapping.fingerprint import SchemaFingerprint
from row_forge.utils.logging import configure_logging

__all__ = [
    # Connection
    "ConnectionConfig",
    "ConnectionManager",
    "AsyncConnectionManager",
    # Sessions
    "Session",
    "AsyncSession",
    "CompiledQuery",
    "AsyncCompiledQuery",
    "ExecutionCache",
    # Registry
    "SQLRegistry",
    # Mapping
    "ColumnInfo",
    "SchemaFingerprint",
    "RowFactoryCache",
    "clear_caches",
    # Settings / logging
    "RowForgeSettings",
    "get_settings",
    "configure_logging",
    # Enums
    "CommandKind",
    "DatabaseBackend",
    "ExecutionPhase",
    "ParameterType",
    "RowErrorPolicy",
    # Exceptions
    "RowForgeError",
    "RegistryError",
    "QueryNotFoundError",
    "DuplicateQueryError",
    "ExecutionError",
    "SqlExecutionError",
    "ParameterBindingError",
    "QueryDisposedError",
    "MappingError",
    "ConfigurationError",
    "ConversionError",
    "AdapterError",
    "ConnectionError",
]
