"""SQL parameter normalization and typed parameter slots.

Commands are written with `:name` placeholders and converted to the
driver's style once per command. Each placeholder a command binds is a
ParameterSlot: it remembers the type tag and size bucket inferred from the
first value and reuses them for later values of the same shape.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any
from uuid import UUID

from row_forge.core.enums import ParameterType

PARAMETER_PREFIX = ":"

# Size bucket for values longer than the configured threshold
UNBOUNDED_SIZE = -1

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1

# Matches :name but not ::typecast and not inside words
# Negative lookbehind for : (handles ::), \w (handles mid-word colons)
_PARAM_PATTERN = re.compile(r"(?<![:\w]):([a-zA-Z_]\w*)")

# Matches single-quoted string literals (with escaped quotes handled)
_STRING_LITERAL_PATTERN = re.compile(r"'(?:[^'\\]|\\.)*'")


def normalize_params(sql: str, paramstyle: str) -> str:
    """Convert :name parameters to the target param style.

    Args:
        sql: SQL string with :name parameters.
        paramstyle: Target style - 'named' (no conversion) or 'pyformat' (%(name)s).

    Returns:
        SQL with parameters converted to the target style.
    """
    if paramstyle == "named":
        return sql
    return _convert_to_pyformat(sql)


@lru_cache(maxsize=256)
def _convert_to_pyformat(sql: str) -> str:
    """Convert :name params to %(name)s, preserving string literals."""
    parts: list[str] = []
    last_end = 0

    for match in _STRING_LITERAL_PATTERN.finditer(sql):
        start, end = match.span()
        if start > last_end:
            parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:start]))
        parts.append(match.group())
        last_end = end

    if last_end < len(sql):
        parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:]))

    return "".join(parts)


def bare_name(name: str) -> str:
    """Strip a leading ``:`` or ``@`` marker from a parameter name."""
    if name[:1] in (":", "@"):
        return name[1:]
    return name


def prefixed_name(name: str) -> str:
    return PARAMETER_PREFIX + bare_name(name)


def infer_type(value: Any) -> ParameterType:
    """Provider type tag for a non-null value."""
    # bool before int and datetime before date: both are subclasses
    if isinstance(value, bool):
        return ParameterType.BOOL
    if isinstance(value, int):
        if _INT32_MIN <= value <= _INT32_MAX:
            return ParameterType.INT
        return ParameterType.BIGINT
    if isinstance(value, float):
        return ParameterType.FLOAT
    if isinstance(value, Decimal):
        return ParameterType.DECIMAL
    if isinstance(value, str):
        return ParameterType.STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ParameterType.BINARY
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return ParameterType.DATETIME_OFFSET
        return ParameterType.DATETIME
    if isinstance(value, date):
        return ParameterType.DATE
    if isinstance(value, time):
        return ParameterType.TIME
    if isinstance(value, UUID):
        return ParameterType.UUID
    return ParameterType.OBJECT


class ParameterSlot:
    """One named placeholder of a command.

    The slot writes converted values into the command's shared parameter
    mapping under its bare name. Its type tag and size bucket are inferred
    on the first non-null bind. Later binds keep them unless the value no
    longer fits: a different type family re-infers, an int outgrowing 32
    bits widens INT to BIGINT, and a string or bytes value longer than the
    small bucket widens the size to UNBOUNDED_SIZE. Buckets never narrow.

    ``size`` is informational: sqlite3 and psycopg infer parameter sizes
    themselves, so neither adapter passes it to the driver. It is exposed
    for logging and for adapters whose driver takes input-size hints.
    """

    __slots__ = (
        "name",
        "prefixed_name",
        "type_tag",
        "size",
        "_values",
        "_convert",
        "_string_threshold",
        "_binary_threshold",
    )

    def __init__(
        self,
        name: str,
        values: dict[str, Any],
        convert: Callable[[Any, ParameterType], Any],
        *,
        string_threshold: int,
        binary_threshold: int,
    ) -> None:
        self.name = bare_name(name)
        self.prefixed_name = PARAMETER_PREFIX + self.name
        self.type_tag = ParameterType.UNSET
        self.size: int | None = None
        self._values = values
        self._convert = convert
        self._string_threshold = string_threshold
        self._binary_threshold = binary_threshold

    @property
    def is_bound(self) -> bool:
        return self.name in self._values

    @property
    def value(self) -> Any:
        return self._values.get(self.name)

    def bind(self, value: Any) -> None:
        if value is None:
            self._values[self.name] = None
            return
        if isinstance(value, Enum):
            value = value.value
        self._update_shape(value)
        self._values[self.name] = self._convert(value, self.type_tag)

    def _update_shape(self, value: Any) -> None:
        tag = infer_type(value)
        if tag is not self.type_tag:
            if not (self.type_tag is ParameterType.BIGINT and tag is ParameterType.INT):
                self.type_tag = tag
                self.size = None

        if tag is ParameterType.STRING:
            threshold = self._string_threshold
        elif tag is ParameterType.BINARY:
            threshold = self._binary_threshold
        else:
            return
        bucket = threshold if len(value) <= threshold else UNBOUNDED_SIZE
        if self.size is None or (self.size != UNBOUNDED_SIZE and bucket == UNBOUNDED_SIZE):
            self.size = bucket

    def __repr__(self) -> str:
        return f"ParameterSlot({self.prefixed_name}, {self.type_tag.value}, size={self.size})"
