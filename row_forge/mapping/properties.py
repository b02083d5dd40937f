"""Per-type field maps.

A PropertyMap lists the public, settable fields of a target class keyed
case-insensitively by name, plus how to create an empty instance. Maps are
built once per class on first use and kept for the life of the process.

Supported targets:

1. Pydantic BaseModel with no required fields -> ``model_construct()``
2. dataclass whose fields all have defaults -> ``target_class()``
3. Plain class whose ``__init__`` takes no required arguments
4. Scalar types (int, str, Decimal, ...) -> first column is the value
"""

from __future__ import annotations

import dataclasses
import inspect
import threading
import types
import typing
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Union, get_args, get_origin
from uuid import UUID

from row_forge.core.exceptions import ConfigurationError
from row_forge.utils.logging import get_logger

logger = get_logger(__name__)

# Types that cannot hold None unless declared Optional. A null column
# leaves such a field at its default instead of assigning None.
VALUE_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    Decimal,
    datetime,
    date,
    time,
    timedelta,
    UUID,
    Enum,
)

SCALAR_TYPES: tuple[type, ...] = (*VALUE_TYPES, str, bytes)


def _is_pydantic_model(cls: type) -> bool:
    """Check if a class is a Pydantic BaseModel."""
    try:
        from pydantic import BaseModel

        return issubclass(cls, BaseModel)
    except ImportError:
        return False


def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Return ``(underlying type, declared nullable)`` for an annotation."""
    if tp is Any or tp is None:
        return object, True
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = get_args(tp)
        non_none = [arg for arg in args if arg is not type(None)]
        nullable = len(non_none) < len(args)
        if len(non_none) == 1:
            inner, _ = unwrap_optional(non_none[0])
            return inner, nullable
        # X | Y: no single conversion target, pass the value through
        return object, nullable
    if origin is typing.Annotated:
        return unwrap_optional(get_args(tp)[0])
    if origin is not None:
        # list[int], dict[str, Any], Literal[...]: check against the origin class
        return (origin if isinstance(origin, type) else object), False
    if not isinstance(tp, type):
        return object, True
    return tp, False


def is_value_type(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, VALUE_TYPES)


@dataclass(frozen=True)
class FieldSlot:
    """A settable field of a target class."""

    name: str
    declared_type: Any
    target_type: Any
    nullable: bool

    @property
    def assigns_none(self) -> bool:
        """True if a null column should set the field to None."""
        return self.nullable or not is_value_type(self.target_type)


class PropertyMap:
    """Case-insensitive column-name -> FieldSlot lookup for one class.

    Lookup first tries the upper-cased name, then the upper-cased name with
    underscores removed, so a ``DepartmentId`` column finds a
    ``department_id`` field.
    """

    def __init__(
        self,
        target_class: type,
        fields: list[FieldSlot],
        new_instance: Callable[[], Any] | None,
        *,
        scalar: bool = False,
    ) -> None:
        self.target_class = target_class
        self.new_instance = new_instance
        self.scalar = scalar
        self.fields = tuple(fields)
        self._by_name: dict[str, FieldSlot] = {}
        self._by_compact: dict[str, FieldSlot] = {}
        for slot in fields:
            self._by_name.setdefault(slot.name.upper(), slot)
            self._by_compact.setdefault(slot.name.replace("_", "").upper(), slot)

    def find(self, column_name: str) -> FieldSlot | None:
        slot = self._by_name.get(column_name.upper())
        if slot is None:
            slot = self._by_compact.get(column_name.replace("_", "").upper())
        return slot

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, column_name: object) -> bool:
        return isinstance(column_name, str) and self.find(column_name) is not None


def _type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError) as e:
        # Unresolvable forward references: fields fall back to raw values
        logger.warning("Cannot resolve type hints for %s: %s", cls.__qualname__, e)
        return {}


def _slot(name: str, annotation: Any) -> FieldSlot:
    target, nullable = unwrap_optional(annotation)
    return FieldSlot(name=name, declared_type=annotation, target_type=target, nullable=nullable)


def _pydantic_map(cls: type) -> PropertyMap:
    if cls.model_config.get("frozen"):  # type: ignore[attr-defined]
        raise ConfigurationError(cls, "frozen models cannot be populated field by field")
    required = [
        name
        for name, info in cls.model_fields.items()  # type: ignore[attr-defined]
        if info.is_required()
    ]
    if required:
        raise ConfigurationError(cls, f"fields without defaults {required}")
    fields = [
        _slot(name, info.annotation)
        for name, info in cls.model_fields.items()  # type: ignore[attr-defined]
        if not name.startswith("_")
    ]
    return PropertyMap(cls, fields, cls.model_construct)  # type: ignore[attr-defined]


def _dataclass_map(cls: type) -> PropertyMap:
    params = getattr(cls, "__dataclass_params__", None)
    if params is not None and params.frozen:
        raise ConfigurationError(cls, "frozen dataclasses cannot be populated field by field")
    required = [
        f.name
        for f in dataclasses.fields(cls)
        if f.init
        and f.default is dataclasses.MISSING
        and f.default_factory is dataclasses.MISSING
    ]
    if required:
        raise ConfigurationError(cls, f"fields without defaults {required}")
    hints = _type_hints(cls)
    fields = [
        _slot(f.name, hints.get(f.name, Any))
        for f in dataclasses.fields(cls)
        if not f.name.startswith("_")
    ]
    return PropertyMap(cls, fields, cls)


def _plain_map(cls: type) -> PropertyMap:
    try:
        signature = inspect.signature(cls)
    except (TypeError, ValueError):
        signature = None
    if signature is not None:
        required = [
            name
            for name, param in signature.parameters.items()
            if param.default is inspect.Parameter.empty
            and param.kind not in (param.VAR_POSITIONAL, param.VAR_KEYWORD)
        ]
        if required:
            raise ConfigurationError(cls, f"constructor requires arguments {required}")

    hints = _type_hints(cls)
    slots: dict[str, FieldSlot] = {}

    for name, annotation in hints.items():
        if name.startswith("_") or get_origin(annotation) is typing.ClassVar:
            continue
        slots[name] = _slot(name, annotation)

    for klass in reversed(cls.__mro__):
        for name, attr in vars(klass).items():
            if isinstance(attr, property) and not name.startswith("_"):
                if attr.fset is None:
                    slots.pop(name, None)
                    continue
                returns = _type_hints(attr.fget).get("return", Any) if attr.fget else Any
                slots[name] = _slot(name, returns)

    # Attributes assigned in __init__ without a class-level annotation
    try:
        sample = cls()
    except Exception as e:
        raise ConfigurationError(cls, f"default construction failed: {e}") from e
    for name, value in vars(sample).items() if hasattr(sample, "__dict__") else ():
        if name.startswith("_") or name in slots:
            continue
        annotation = type(value) if value is not None else Any
        slots[name] = _slot(name, annotation)

    return PropertyMap(cls, list(slots.values()), cls)


def _build_property_map(cls: type) -> PropertyMap:
    if not isinstance(cls, type):
        raise ConfigurationError(type(cls), f"{cls!r} is not a class")
    if issubclass(cls, SCALAR_TYPES):
        return PropertyMap(cls, [_slot("value", cls)], None, scalar=True)
    if _is_pydantic_model(cls):
        return _pydantic_map(cls)
    if dataclasses.is_dataclass(cls):
        return _dataclass_map(cls)
    return _plain_map(cls)


_property_maps: dict[type, PropertyMap] = {}
_publish_lock = threading.Lock()


def get_property_map(cls: type) -> PropertyMap:
    """Return the cached PropertyMap for ``cls``, building it on first use.

    Concurrent first calls may each build a map; the first one published
    wins and the others are discarded.

    Raises:
        ConfigurationError: If ``cls`` cannot be default-constructed.
    """
    cached = _property_maps.get(cls)
    if cached is not None:
        return cached
    built = _build_property_map(cls)
    with _publish_lock:
        return _property_maps.setdefault(cls, built)


def clear_property_maps() -> None:
    with _publish_lock:
        _property_maps.clear()
