"""Bound commands.

A Command is the reusable, prepared form of one query text: its driver SQL
is rendered once, and its parameter slots hold the current values. Compiled
queries and convenience-cache entries each own one Command and rebind its
slots between executions.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from row_forge.config import get_settings
from row_forge.core.enums import CommandKind
from row_forge.core.exceptions import ParameterBindingError, QueryDisposedError
from row_forge.core.params import ParameterSlot, bare_name, normalize_params
from row_forge.core.registry import SQLRegistry


def render_sql(
    adapter: Any,
    text: str,
    kind: CommandKind,
    parameter_names: Iterable[str],
    *,
    registry: SQLRegistry | None = None,
    returns_rows: bool = True,
) -> str:
    """Driver SQL for a command text.

    Procedure names registered in ``registry`` run the registered SQL;
    other procedure names are rendered by the adapter as a native call.
    """
    if kind is CommandKind.PROCEDURE:
        if registry is not None and text in registry:
            sql = registry.get_sql(text)
        else:
            sql = adapter.procedure_sql(
                text, [bare_name(name) for name in parameter_names], returns_rows=returns_rows
            )
    else:
        sql = text
    return normalize_params(sql, adapter.paramstyle)


class Command:
    """Driver SQL plus ordered, typed parameter slots.

    Args:
        adapter: The adapter the command will run on.
        text: SQL text or procedure name as supplied by the caller.
        kind: How ``text`` is interpreted.
        parameter_names: Placeholder names, bare or ``:``-prefixed, in
            positional order.
        registry: Consulted for procedure names.
        returns_rows: False renders a non-query procedure call.
    """

    def __init__(
        self,
        adapter: Any,
        text: str,
        kind: CommandKind = CommandKind.TEXT,
        parameter_names: Iterable[str] = (),
        *,
        registry: SQLRegistry | None = None,
        returns_rows: bool = True,
    ) -> None:
        names = list(parameter_names)
        self.text = text
        self.kind = kind
        self.sql = render_sql(
            adapter, text, kind, names, registry=registry, returns_rows=returns_rows
        )
        self.closed = False
        self._values: dict[str, Any] = {}

        settings = get_settings()
        self.slots: tuple[ParameterSlot, ...] = tuple(
            ParameterSlot(
                name,
                self._values,
                adapter.bind_value,
                string_threshold=settings.string_size_threshold,
                binary_threshold=settings.binary_size_threshold,
            )
            for name in names
        )
        self._by_name: dict[str, ParameterSlot] = {}
        for slot in self.slots:
            self._by_name[slot.name] = slot
            self._by_name[slot.prefixed_name] = slot

    @classmethod
    def with_values(
        cls,
        adapter: Any,
        text: str,
        kind: CommandKind,
        params: Mapping[str, Any] | None,
        **kwargs: Any,
    ) -> Command:
        """Create a command with one slot per key of ``params`` and bind them."""
        command = cls(adapter, text, kind, list(params or ()), **kwargs)
        if params:
            command.update(params)
        return command

    def _check_open(self) -> None:
        if self.closed:
            raise QueryDisposedError(self.text)

    def set_value(self, index: int, value: Any) -> None:
        """Bind ``value`` to the slot at ``index``."""
        self._check_open()
        if not 0 <= index < len(self.slots):
            raise ParameterBindingError(
                self.text, f"index {index} out of range for {len(self.slots)} parameters"
            )
        self.slots[index].bind(value)

    def update(self, params: Mapping[str, Any]) -> None:
        """Rebind slots by name; keys matching no slot are ignored."""
        self._check_open()
        for key, value in params.items():
            slot = self._by_name.get(key)
            if slot is not None:
                slot.bind(value)

    def driver_params(self) -> dict[str, Any]:
        """Values to hand to the driver.

        Raises:
            ParameterBindingError: If a slot has never been bound.
        """
        self._check_open()
        for slot in self.slots:
            if not slot.is_bound:
                raise ParameterBindingError(self.text, f"parameter '{slot.name}' was never set")
        return self._values

    def close(self) -> None:
        self.closed = True
        self._values.clear()

    def __repr__(self) -> str:
        state = "closed" if self.closed else f"{len(self.slots)} parameters"
        return f"Command({self.kind.value}, {self.text!r}, {state})"
