"""Per-target-class cache of compiled row factories.

Lookup order for a result schema:

1. Query identity: the last (command text, column count) seen in the
   current context, which skips fingerprinting entirely.
2. Last schema: the last fingerprint seen in the current context.
3. The shared table for the class, keyed by fingerprint.
4. Compile a new factory and publish it; concurrent builders of the same
   schema keep whichever factory was published first.

The two single-slot tiers live in ContextVars, so each thread and each
asyncio task sees its own and never blocks on the others.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from row_forge.mapping.compiler import build_factory, is_mapping_target
from row_forge.mapping.fingerprint import SchemaFingerprint
from row_forge.mapping.properties import clear_property_maps
from row_forge.mapping.protocol import RowFactory
from row_forge.utils.logging import get_logger

if TYPE_CHECKING:
    from row_forge.core.reader import ColumnInfo

T = TypeVar("T")

logger = get_logger(__name__)


class RowFactoryCache(Generic[T]):
    """Compiled factories for one target class.

    Use :meth:`for_model` rather than the constructor so every caller shares
    the same instance per class.
    """

    def __init__(self, target_class: type[T]) -> None:
        self.target_class = target_class
        # Mapping targets emit column names verbatim, so their key also
        # carries the exact names the case-insensitive fingerprint folds
        self._exact_names = is_mapping_target(target_class)
        self._shared: dict[Any, RowFactory[T]] = {}
        self._lock = threading.Lock()
        name = target_class.__qualname__
        self._last: ContextVar[tuple[Any, RowFactory[T]] | None] = ContextVar(
            f"row_forge_last_{name}", default=None
        )
        self._last_command: ContextVar[tuple[str, int, RowFactory[T]] | None] = ContextVar(
            f"row_forge_last_command_{name}", default=None
        )

    @classmethod
    def for_model(cls, target_class: type[T]) -> RowFactoryCache[T]:
        cached = _caches.get(target_class)
        if cached is not None:
            return cached
        with _caches_lock:
            return _caches.setdefault(target_class, cls(target_class))

    def get_or_build(
        self, columns: Sequence[ColumnInfo], command_text: str | None = None
    ) -> RowFactory[T]:
        """Return the factory for ``columns``, compiling it if needed."""
        field_count = len(columns)

        if command_text is not None:
            last_command = self._last_command.get()
            if (
                last_command is not None
                and last_command[0] == command_text
                and last_command[1] == field_count
            ):
                return last_command[2]

        key: Any = SchemaFingerprint.from_columns(columns)
        if self._exact_names:
            key = (key, tuple(column.name for column in columns))

        last = self._last.get()
        if last is not None and last[0] == key:
            factory = last[1]
        else:
            factory = self._shared.get(key)  # type: ignore[assignment]
            if factory is None:
                factory = self._publish(key, build_factory(self.target_class, columns))
            self._last.set((key, factory))

        if command_text is not None:
            self._last_command.set((command_text, field_count, factory))
        return factory

    def _publish(self, key: Any, built: RowFactory[T]) -> RowFactory[T]:
        with self._lock:
            winner = self._shared.setdefault(key, built)
        if winner is not built:
            logger.debug(
                "Discarded duplicate row factory for %s", self.target_class.__qualname__
            )
        return winner

    def __len__(self) -> int:
        return len(self._shared)

    def clear(self) -> None:
        """Drop shared factories and the current context's single-slot entries."""
        with self._lock:
            self._shared.clear()
        self._last.set(None)
        self._last_command.set(None)


_caches: dict[type, RowFactoryCache[Any]] = {}
_caches_lock = threading.Lock()


def get_factory(
    target_class: type[T], columns: Sequence[ColumnInfo], command_text: str | None = None
) -> RowFactory[T]:
    """Shortcut for ``RowFactoryCache.for_model(target_class).get_or_build(...)``."""
    return RowFactoryCache.for_model(target_class).get_or_build(columns, command_text)


def clear_caches() -> None:
    """Forget every compiled factory and property map."""
    with _caches_lock:
        caches = list(_caches.values())
        _caches.clear()
    for cache in caches:
        cache.clear()
    clear_property_maps()
