"""Mapping layer - compile result schemas into row factories."""

from __future__ import annotations

from row_forge.mapping.cache import RowFactoryCache, clear_caches, get_factory
from row_forge.mapping.compiler import build_factory
from row_forge.mapping.fingerprint import SchemaFingerprint
from row_forge.mapping.properties import FieldSlot, PropertyMap, get_property_map
from row_forge.mapping.protocol import RowFactory

__all__ = [
    "RowFactory",
    "RowFactoryCache",
    "SchemaFingerprint",
    "PropertyMap",
    "FieldSlot",
    "build_factory",
    "get_factory",
    "get_property_map",
    "clear_caches",
]
