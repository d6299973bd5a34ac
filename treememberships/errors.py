"""Exception types raised by the memberships layer.

Every error here signals a broken caller contract; none of them is meant
to be caught and retried inside the library.
"""

from __future__ import annotations

import numpy as np

INT32_MAX = int(np.iinfo(np.int32).max)


class MembershipsError(Exception):
    """Base class for all memberships errors."""


class IndexOutOfRangeError(MembershipsError, IndexError):
    """A local, column or row index lies outside ``[0, size)``."""


class InvalidCursorStateError(MembershipsError, RuntimeError):
    """A cursor accessor was used while the cursor is before its first member."""


class InternalOverflowError(MembershipsError, OverflowError):
    """A row count or bit cardinality exceeds the ``int32`` index range."""


class WeightOverflowError(MembershipsError, OverflowError):
    """A row multiplicity does not fit the configured weight encoding."""


class ConstructionError(MembershipsError, ValueError):
    """Upstream sample or column data is malformed or inconsistent."""


def check_index(index: int, size: int, what: str = "index") -> int:
    """Return ``index`` as ``int`` or raise :class:`IndexOutOfRangeError`."""
    idx = int(index)
    if idx < 0 or idx >= size:
        raise IndexOutOfRangeError(f"{what} {idx} out of range [0, {size})")
    return idx


def check_row_count(count: int, what: str = "row count") -> int:
    """Guard ``count`` against the ``int32`` range used for index arrays."""
    count = int(count)
    if count > INT32_MAX:
        raise InternalOverflowError(f"{what} {count} exceeds int32 range ({INT32_MAX})")
    return count
