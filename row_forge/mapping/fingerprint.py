"""Structural identity of a result schema.

A fingerprint folds every column's name (case-insensitive) and type into
two independent 64-bit FNV-1a accumulators. It is the cache key for
compiled row factories: equal schemas always fingerprint equal, and a
collision between different schemas is possible but improbable.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from row_forge.core.reader import ColumnInfo

_FNV_OFFSET_BASIS_1 = 14695981039346656037
_FNV_OFFSET_BASIS_2 = 9650029242287828579
_FNV_PRIME = 1099511628211
_MASK_64 = 0xFFFFFFFFFFFFFFFF

_type_ids: dict[type, int] = {}


def _add_name(hash_: int, name: str) -> int:
    for ch in name:
        code = ord(ch)
        if 97 <= code <= 122:
            # ASCII a-z: clear bit 5 to upper-case
            code &= ~0x20
        elif code > 127:
            for upper in ch.upper():
                hash_ = ((hash_ ^ ord(upper)) * _FNV_PRIME) & _MASK_64
            continue
        hash_ = ((hash_ ^ code) * _FNV_PRIME) & _MASK_64
    # separator, so ("ab", "c") and ("a", "bc") differ
    return (hash_ * _FNV_PRIME) & _MASK_64


def _add_int64(hash_: int, value: int) -> int:
    for shift in range(0, 64, 8):
        hash_ = ((hash_ ^ ((value >> shift) & 0xFF)) * _FNV_PRIME) & _MASK_64
    return hash_


def type_id(tp: type) -> int:
    """Stable 64-bit identifier for a column type.

    Derived from the qualified type name so it is identical across
    processes, unlike ``id(tp)``.
    """
    cached = _type_ids.get(tp)
    if cached is not None:
        return cached
    qualified = f"{tp.__module__}.{tp.__qualname__}"
    hash_ = _FNV_OFFSET_BASIS_1
    for byte in qualified.encode("utf-8"):
        hash_ = ((hash_ ^ byte) * _FNV_PRIME) & _MASK_64
    _type_ids[tp] = hash_
    return hash_


@dataclass(frozen=True)
class SchemaFingerprint:
    """Value-comparable identity of (column names, column types, order)."""

    field_count: int
    hash1: int
    hash2: int

    @classmethod
    def from_columns(cls, columns: Sequence[ColumnInfo]) -> SchemaFingerprint:
        hash1 = _FNV_OFFSET_BASIS_1
        hash2 = _FNV_OFFSET_BASIS_2
        for ordinal, column in enumerate(columns):
            tid = type_id(column.type)

            hash1 = _add_name(hash1, column.name)
            hash1 = _add_int64(hash1, tid)

            # hash2 mixes the ordinal first so a permutation moves it
            # independently of hash1
            hash2 ^= (ordinal * _FNV_PRIME) & _MASK_64
            hash2 = _add_name(hash2, column.name)
            hash2 = _add_int64(hash2, tid)

        return cls(len(columns), hash1, hash2)


def compute(reader: object) -> SchemaFingerprint:
    """Fingerprint the result schema of an open reader."""
    return SchemaFingerprint.from_columns(reader.columns)  # type: ignore[attr-defined]
