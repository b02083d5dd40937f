"""Row factory protocol.

A row factory turns the reader's current record (a sequence indexed by
column ordinal) into one target object. Factories are pure: they read the
record, build a new instance and touch no shared state, so one factory is
safely shared by every thread and task.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, TypeVar

T_co = TypeVar("T_co", covariant=True)


class RowFactory(Protocol[T_co]):
    """Compiled record -> object conversion."""

    def __call__(self, record: Sequence[Any], /) -> T_co:
        """Map one record to a new target object."""
        ...
