"""Execution cache behind the convenience API.

One entry per (connection owner, query text, command kind, target class).
An entry keeps the bound Command, the row factory once known, and the
previous row count. Entries are held weakly by owner, so they disappear
with the session that created them. An optional per-owner bound evicts
the least recently used entry and closes its command.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from weakref import WeakKeyDictionary

from row_forge.config import get_settings
from row_forge.core.command import Command
from row_forge.core.enums import CommandKind
from row_forge.mapping.protocol import RowFactory
from row_forge.utils.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

CacheKey = tuple[str, CommandKind, type]


@dataclass(eq=False)
class CompiledEntry(Generic[T]):
    """Per-key state owned by the execution cache. Not safe for concurrent use."""

    command: Command
    factory: RowFactory[T] | None = None
    last_row_count: int = 0


class ExecutionCache:
    """Per-owner command cache with first-writer-wins publication.

    Args:
        max_entries: Per-owner bound; None keeps every entry.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        self.max_entries = max_entries
        self._owners: WeakKeyDictionary[Any, OrderedDict[CacheKey, CompiledEntry[Any]]] = (
            WeakKeyDictionary()
        )
        self._lock = threading.Lock()

    def get_or_create(
        self,
        owner: Hashable,
        text: str,
        kind: CommandKind,
        model: type[T],
        create: Callable[[], Command],
    ) -> tuple[CompiledEntry[T], bool]:
        """Return ``(entry, created)`` for the key, building the command on a miss.

        When two callers miss concurrently both build a command; the first to
        publish wins and the other's command is closed.
        """
        key: CacheKey = (text, kind, model)
        entries = self._owners.get(owner)
        if entries is not None:
            entry = entries.get(key)
            if entry is not None:
                if self.max_entries is not None:
                    with self._lock:
                        if key in entries:
                            entries.move_to_end(key)
                return entry, False

        built: CompiledEntry[T] = CompiledEntry(create())
        evicted: list[CompiledEntry[Any]] = []
        with self._lock:
            entries = self._owners.get(owner)
            if entries is None:
                entries = OrderedDict()
                self._owners[owner] = entries
            winner = entries.setdefault(key, built)
            if winner is built and self.max_entries is not None:
                while len(entries) > self.max_entries:
                    evicted.append(entries.popitem(last=False)[1])

        if winner is not built:
            built.command.close()
            logger.debug("Discarded duplicate command for %r", text)
            return winner, False

        logger.debug("Cached command for %r (%s, %s)", text, kind.value, model.__qualname__)
        for old in evicted:
            old.command.close()
            logger.debug("Evicted cached command for %r", old.command.text)
        return built, True

    def entry_count(self, owner: Any) -> int:
        entries = self._owners.get(owner)
        return len(entries) if entries is not None else 0

    def clear(self, owner: Any = None) -> None:
        """Close and drop entries for ``owner``, or for every owner."""
        with self._lock:
            if owner is None:
                dropped = [entries for entries in self._owners.values()]
                self._owners.clear()
            else:
                removed = self._owners.pop(owner, None)
                dropped = [removed] if removed is not None else []
        for entries in dropped:
            for entry in entries.values():
                entry.command.close()


_default_cache: ExecutionCache | None = None
_default_lock = threading.Lock()


def get_execution_cache() -> ExecutionCache:
    """Process-wide cache used by sessions that are not given their own."""
    global _default_cache
    if _default_cache is None:
        with _default_lock:
            if _default_cache is None:
                _default_cache = ExecutionCache(get_settings().execution_cache_max_entries)
    return _default_cache
