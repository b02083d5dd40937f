"""Unit tests for the convenience-API execution cache."""

from __future__ import annotations

import gc
from dataclasses import dataclass

from row_forge.adapters.sqlite import SqliteSyncAdapter
from row_forge.core.cache import ExecutionCache
from row_forge.core.command import Command
from row_forge.core.enums import CommandKind


@dataclass
class Employee:
    id: int = 0


@dataclass
class NameOnly:
    name: str = ""


class Owner:
    """Stands in for a connection manager."""


def _command(text: str = "SELECT 1") -> Command:
    return Command(SqliteSyncAdapter(), text)


TEXT = CommandKind.TEXT


class TestExecutionCache:
    def test_first_call_creates_then_reuses(self) -> None:
        cache = ExecutionCache()
        owner = Owner()
        entry, created = cache.get_or_create(owner, "SELECT 1", TEXT, Employee, _command)
        again, created_again = cache.get_or_create(owner, "SELECT 1", TEXT, Employee, _command)
        assert created is True
        assert created_again is False
        assert again is entry

    def test_key_includes_model_kind_and_owner(self) -> None:
        cache = ExecutionCache()
        owner, other_owner = Owner(), Owner()
        base, _ = cache.get_or_create(owner, "q", TEXT, Employee, _command)
        by_model, _ = cache.get_or_create(owner, "q", TEXT, NameOnly, _command)
        by_owner, _ = cache.get_or_create(other_owner, "q", TEXT, Employee, _command)
        assert len({id(base), id(by_model), id(by_owner)}) == 3
        assert cache.entry_count(owner) == 2

    def test_losing_command_is_closed(self) -> None:
        cache = ExecutionCache()
        owner = Owner()
        winner_command = _command()
        loser_command = _command()

        def create_while_another_caller_publishes() -> Command:
            cache.get_or_create(owner, "q", TEXT, Employee, lambda: winner_command)
            return loser_command

        entry, created = cache.get_or_create(
            owner, "q", TEXT, Employee, create_while_another_caller_publishes
        )
        assert created is False
        assert entry.command is winner_command
        assert loser_command.closed is True
        assert winner_command.closed is False

    def test_bounded_cache_evicts_least_recently_used(self) -> None:
        cache = ExecutionCache(max_entries=2)
        owner = Owner()
        first, _ = cache.get_or_create(owner, "q1", TEXT, Employee, _command)
        second, _ = cache.get_or_create(owner, "q2", TEXT, Employee, _command)
        cache.get_or_create(owner, "q1", TEXT, Employee, _command)
        cache.get_or_create(owner, "q3", TEXT, Employee, _command)

        assert cache.entry_count(owner) == 2
        assert second.command.closed is True
        assert first.command.closed is False
        _, recreated = cache.get_or_create(owner, "q2", TEXT, Employee, _command)
        assert recreated is True

    def test_clear_owner_closes_commands(self) -> None:
        cache = ExecutionCache()
        owner = Owner()
        entry, _ = cache.get_or_create(owner, "q", TEXT, Employee, _command)
        cache.clear(owner)
        assert entry.command.closed is True
        assert cache.entry_count(owner) == 0

    def test_entries_die_with_their_owner(self) -> None:
        cache = ExecutionCache()
        owner = Owner()
        cache.get_or_create(owner, "q", TEXT, Employee, _command)
        del owner
        gc.collect()
        assert len(cache._owners) == 0
