"""Connection configuration and lifecycle.

ConnectionConfig is a Pydantic model for type-safe connection config.
ConnectionManager and AsyncConnectionManager own one logical connection
through an adapter. Each operation acquires it through ``acquire()``, which
opens the connection if it is closed and closes it again afterwards only
if that same call opened it.
"""

from __future__ import annotations

import importlib
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

from pydantic import BaseModel

from row_forge.core.exceptions import (
    AdapterError,
    ConnectionError,  # noqa: A004
    RowForgeError,
)
from row_forge.utils.logging import get_logger

logger = get_logger(__name__)


class ConnectionConfig(BaseModel):
    """Configuration for database connections."""

    driver: str
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str
    extra: dict[str, Any] = {}


# Adapter module mapping: driver name → (module_path, sync_class, async_class)
_ADAPTER_MAP: dict[str, tuple[str, str, str]] = {
    "sqlite": ("row_forge.adapters.sqlite", "SqliteSyncAdapter", "SqliteAsyncAdapter"),
    "postgresql": (
        "row_forge.adapters.postgresql",
        "PostgresqlSyncAdapter",
        "PostgresqlAsyncAdapter",
    ),
}


def load_adapter(driver: str, kind: str) -> Any:
    """Load a sync or async adapter by driver name."""
    driver_lower = driver.lower()
    if driver_lower not in _ADAPTER_MAP:
        raise AdapterError(f"Unsupported database driver: {driver}")

    module_path, sync_cls_name, async_cls_name = _ADAPTER_MAP[driver_lower]
    cls_name = sync_cls_name if kind == "sync" else async_cls_name

    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load {kind} adapter for '{driver}': {e}") from e


class ConnectionManager:
    """Synchronous owner of one connection, using the SyncAdapter protocol.

    Args:
        config: Connection settings; also used to reopen a closed connection.
        connection: An already-open driver connection to adopt. The manager
            does not close an adopted connection unless it reopened it.
    """

    def __init__(self, config: ConnectionConfig, connection: Any = None) -> None:
        self.config = config
        self._adapter = load_adapter(config.driver, "sync")
        self._connection: Any = connection
        self._adopted = connection is not None

    @property
    def adapter(self) -> Any:
        return self._adapter

    @property
    def connection(self) -> Any:
        """The current driver connection, or None if never opened."""
        return self._connection

    @property
    def is_open(self) -> bool:
        return self._connection is not None and self._adapter.is_open(self._connection)

    def ensure_open(self) -> bool:
        """Open the connection if it is closed; return True if this call opened it."""
        if self.is_open:
            return False
        try:
            self._connection = self._adapter.connect(self.config)
            self._adopted = False
        except RowForgeError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to open {self.config.driver} connection: {e}") from e
        logger.debug("Opened %s connection to %s", self.config.driver, self.config.database)
        return True

    def close(self) -> None:
        """Close the connection, or only release it if it was adopted."""
        if self._connection is None:
            return
        if not self._adopted:
            self._adapter.close_connection(self._connection)
            logger.debug("Closed %s connection", self.config.driver)
        self._connection = None
        self._adopted = False

    @contextmanager
    def acquire(self) -> Iterator[Any]:
        """Yield an open connection for one operation."""
        opened_here = self.ensure_open()
        try:
            yield self._connection
        finally:
            if opened_here:
                self.close()

    def commit(self) -> None:
        if self._connection is not None:
            self._adapter.commit(self._connection)


class AsyncConnectionManager:
    """Asynchronous owner of one connection, using the AsyncAdapter protocol."""

    def __init__(self, config: ConnectionConfig, connection: Any = None) -> None:
        self.config = config
        self._adapter = load_adapter(config.driver, "async")
        self._connection: Any = connection
        self._adopted = connection is not None

    @property
    def adapter(self) -> Any:
        return self._adapter

    @property
    def connection(self) -> Any:
        return self._connection

    @property
    def is_open(self) -> bool:
        return self._connection is not None and self._adapter.is_open(self._connection)

    async def ensure_open(self) -> bool:
        """Open the connection if it is closed; return True if this call opened it."""
        if self.is_open:
            return False
        try:
            self._connection = await self._adapter.connect_async(self.config)
            self._adopted = False
        except RowForgeError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to open {self.config.driver} connection: {e}") from e
        logger.debug("Opened %s connection to %s", self.config.driver, self.config.database)
        return True

    async def close(self) -> None:
        """Close the connection, or only release it if it was adopted."""
        if self._connection is None:
            return
        if not self._adopted:
            await self._adapter.close_connection_async(self._connection)
            logger.debug("Closed %s connection", self.config.driver)
        self._connection = None
        self._adopted = False

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        """Yield an open connection for one operation."""
        opened_here = await self.ensure_open()
        try:
            yield self._connection
        finally:
            if opened_here:
                await self.close()

    async def commit(self) -> None:
        if self._connection is not None:
            await self._adapter.commit_async(self._connection)
