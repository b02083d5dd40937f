"""Value conversions used when a column type does not match its field type.

Each converter takes a non-null raw value and returns the target type or
raises ValueError / TypeError / ArithmeticError. The row factory wraps
those into ConversionError with field context.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

Converter = Callable[[Any], Any]


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (float, Decimal)):
        # half-to-even, matching Python's round()
        return int(round(value))
    if isinstance(value, (str, bytes)):
        return int(value.strip())
    return int(value)


def _to_float(value: Any) -> float:
    return float(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (bytes, bytearray)):
        return Decimal(value.decode("ascii").strip())
    if isinstance(value, str):
        return Decimal(value.strip())
    return Decimal(value)


_TRUE = frozenset({"TRUE", "1"})
_FALSE = frozenset({"FALSE", "0"})


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        text = value.strip().upper()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"not a boolean: {value!r}")
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    raise TypeError(f"cannot convert {type(value).__name__} to bool")


def _to_str(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8")
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, UUID):
        return value.bytes
    raise TypeError(f"cannot convert {type(value).__name__} to bytes")


def _to_uuid(value: Any) -> UUID:
    if isinstance(value, str):
        return UUID(value.strip())
    if isinstance(value, (bytes, bytearray, memoryview)):
        return UUID(bytes=bytes(value))
    if isinstance(value, int) and not isinstance(value, bool):
        return UUID(int=value)
    raise TypeError(f"cannot convert {type(value).__name__} to UUID")


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip())
    if isinstance(value, date):
        return datetime.combine(value, time())
    raise TypeError(f"cannot convert {type(value).__name__} to datetime")


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            return datetime.fromisoformat(text).date()
        return date.fromisoformat(text)
    raise TypeError(f"cannot convert {type(value).__name__} to date")


def _to_time(value: Any) -> time:
    if isinstance(value, timedelta):
        if not timedelta(0) <= value < timedelta(days=1):
            raise ValueError(f"interval {value} is not a time of day")
        return (datetime.min + value).time()
    if isinstance(value, datetime):
        return value.timetz()
    if isinstance(value, str):
        return time.fromisoformat(value.strip())
    raise TypeError(f"cannot convert {type(value).__name__} to time")


def _to_timedelta(value: Any) -> timedelta:
    if isinstance(value, time):
        return timedelta(
            hours=value.hour,
            minutes=value.minute,
            seconds=value.second,
            microseconds=value.microsecond,
        )
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    if isinstance(value, Decimal):
        return timedelta(seconds=float(value))
    raise TypeError(f"cannot convert {type(value).__name__} to timedelta")


_CONVERTERS: dict[type, Converter] = {
    int: _to_int,
    float: _to_float,
    Decimal: _to_decimal,
    bool: _to_bool,
    str: _to_str,
    bytes: _to_bytes,
    UUID: _to_uuid,
    datetime: _to_datetime,
    date: _to_date,
    time: _to_time,
    timedelta: _to_timedelta,
}


# --- Enums ---


_enum_names: dict[type[Enum], dict[str, Enum]] = {}


def enum_underlying_type(enum_cls: type[Enum]) -> type:
    """Type of the enum's member values (int for IntEnum/Flag, str for StrEnum)."""
    for member in enum_cls:
        return type(member.value)
    return int


def parse_enum(enum_cls: type[Enum], text: str) -> Enum:
    """Parse a member from its value, its name (any case) or a numeric string."""
    try:
        return enum_cls(text)
    except ValueError:
        pass
    names = _enum_names.get(enum_cls)
    if names is None:
        names = {name.upper(): member for name, member in enum_cls.__members__.items()}
        _enum_names[enum_cls] = names
    member = names.get(text.strip().upper())
    if member is not None:
        return member
    stripped = text.strip()
    if stripped.lstrip("-").isdigit():
        return enum_cls(int(stripped))
    raise ValueError(f"{text!r} is not a valid {enum_cls.__qualname__}")


def enum_converter(enum_cls: type[Enum], column_type: type) -> Converter:
    """Read path for an enum field given the column's reported type."""
    if issubclass(column_type, str):
        return lambda value: parse_enum(enum_cls, value) if isinstance(value, str) else enum_cls(value)

    underlying = enum_underlying_type(enum_cls)
    if column_type is underlying:
        return enum_cls

    to_underlying = converter_for(underlying)

    def convert(value: Any) -> Enum:
        if isinstance(value, enum_cls):
            return value
        if isinstance(value, str):
            return parse_enum(enum_cls, value)
        return enum_cls(to_underlying(value))

    return convert


# --- Entry points ---


# bool subclasses int and datetime subclasses date; neither may pass through
_EXACT_ONLY = frozenset({int, date})


def converter_for(target: type) -> Converter:
    """Return a converter that passes through values already of ``target``.

    Unknown targets fall back to calling ``target(value)``.
    """
    if issubclass(target, Enum):
        return enum_converter(target, object)

    convert: Converter = _CONVERTERS.get(target, target)

    if target in _EXACT_ONLY:

        def exact(value: Any) -> Any:
            if type(value) is target:
                return value
            return convert(value)

        return exact

    def checked(value: Any) -> Any:
        if isinstance(value, target):
            return value
        return convert(value)

    return checked


def convert_value(value: Any, target: type) -> Any:
    """Convert a single non-null value to ``target``."""
    return converter_for(target)(value)
