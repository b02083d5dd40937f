"""Row factory compiler.

Builds, once per (target class, result schema), a closure that maps a
record to a new instance. All introspection happens here; the returned
factory only indexes the record, converts where the column type differs
from the field type, and sets attributes.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from row_forge.core.exceptions import ConfigurationError, ConversionError
from row_forge.mapping.convert import Converter, converter_for, enum_converter
from row_forge.mapping.properties import FieldSlot, PropertyMap, get_property_map
from row_forge.mapping.protocol import RowFactory
from row_forge.utils.logging import get_logger

if TYPE_CHECKING:
    from row_forge.core.reader import ColumnInfo

T = TypeVar("T")

logger = get_logger(__name__)

# Errors a converter or setter raises for a bad value
_CONVERSION_FAILURES = (ValueError, TypeError, ArithmeticError)

Step = Callable[[Any, Sequence[Any]], None]


def read_path(target: Any, column_type: type) -> Converter | None:
    """Choose how a column value reaches a field of type ``target``.

    Returns None when the value can be used as read (exact type match or an
    untyped field), otherwise a converter.
    """
    if target is object:
        return None
    if issubclass(target, Enum):
        return enum_converter(target, column_type)
    if column_type is target:
        return None
    return converter_for(target)


def _make_step(ordinal: int, name: str, read: Converter | None, on_null: str) -> Step:
    # on_null: "none" assigns None, "skip" leaves the default, "unchecked"
    # means the column is known NOT NULL
    if on_null == "unchecked":
        if read is None:

            def step(obj: Any, record: Sequence[Any]) -> None:
                setattr(obj, name, record[ordinal])

        else:

            def step(obj: Any, record: Sequence[Any]) -> None:
                setattr(obj, name, read(record[ordinal]))

    elif on_null == "none":

        def step(obj: Any, record: Sequence[Any]) -> None:
            value = record[ordinal]
            if value is not None and read is not None:
                value = read(value)
            setattr(obj, name, value)

    else:

        def step(obj: Any, record: Sequence[Any]) -> None:
            value = record[ordinal]
            if value is not None:
                setattr(obj, name, value if read is None else read(value))

    return step


def _null_policy(slot: FieldSlot, column: ColumnInfo) -> str:
    if column.nullable is False:
        return "unchecked"
    return "none" if slot.assigns_none else "skip"


def _scalar_factory(properties: PropertyMap, columns: Sequence[ColumnInfo]) -> RowFactory[Any]:
    """Map the first column to ``target_class``.

    A NULL first column yields None for every scalar target, value types
    included, so ``fetch_first(int, "SELECT MAX(x) ...")`` can tell an
    empty aggregate from zero.
    """
    target_class = properties.target_class
    if not columns:
        raise ConfigurationError(target_class, "scalar results need at least one column")
    column = columns[0]
    read = read_path(target_class, column.type)

    def factory(record: Sequence[Any]) -> Any:
        value = record[0]
        if value is None or read is None:
            return value
        try:
            return read(value)
        except _CONVERSION_FAILURES as e:
            raise ConversionError(target_class, "value", column.name, value, target_class) from e

    return factory


def is_mapping_target(target_class: Any) -> bool:
    """True for ``dict`` and other Mapping classes, which receive untyped rows."""
    return isinstance(target_class, type) and issubclass(target_class, Mapping)


def _mapping_factory(target_class: type, columns: Sequence[ColumnInfo]) -> RowFactory[Any]:
    names = tuple(column.name for column in columns)

    if target_class is dict or not issubclass(target_class, dict):

        def factory(record: Sequence[Any]) -> Any:
            return dict(zip(names, record, strict=True))

    else:

        def factory(record: Sequence[Any]) -> Any:
            row = target_class()
            row.update(zip(names, record, strict=True))
            return row

    return factory


def build_factory(target_class: type[T], columns: Sequence[ColumnInfo]) -> RowFactory[T]:
    """Compile a row factory for ``target_class`` and the given schema.

    Columns without a matching field are skipped. Fields without a matching
    column keep their defaults.

    Mapping targets (``dict``, a dict subclass, or an abstract Mapping)
    get ``{column name: value}`` with values as the driver returned them.

    Raises:
        ConfigurationError: If ``target_class`` cannot be default-constructed.
    """
    if is_mapping_target(target_class):
        return _mapping_factory(target_class, columns)

    properties = get_property_map(target_class)
    if properties.scalar:
        return _scalar_factory(properties, columns)

    new_instance = properties.new_instance
    assert new_instance is not None

    steps: list[Step] = []
    # (ordinal, field name, column name, field type) per step, for errors
    origins: list[tuple[int, str, str, Any]] = []
    for ordinal, column in enumerate(columns):
        slot = properties.find(column.name)
        if slot is None:
            continue
        read = read_path(slot.target_type, column.type)
        steps.append(_make_step(ordinal, slot.name, read, _null_policy(slot, column)))
        origins.append((ordinal, slot.name, column.name, slot.declared_type))

    step_tuple = tuple(steps)

    def factory(record: Sequence[Any]) -> T:
        obj = new_instance()
        index = 0
        try:
            for index, step in enumerate(step_tuple):
                step(obj, record)
        except _CONVERSION_FAILURES as e:
            ordinal, field_name, column_name, field_type = origins[index]
            raise ConversionError(
                target_class, field_name, column_name, record[ordinal], field_type
            ) from e
        return obj  # type: ignore[no-any-return]

    logger.debug(
        "Compiled row factory for %s: %d of %d columns mapped",
        target_class.__qualname__,
        len(step_tuple),
        len(columns),
    )
    return factory
