"""Core row/column membership structures used while growing trees."""

from .cache import ColumnIndexCache, ColumnIndexEntry, build_column_entry
from .cursor import ColumnMemberships, DescendantColumnMemberships, RootColumnMemberships
from .index_manager import RowIndexManager
from .memberships import (
    BitSetDescendantMemberships,
    DataMemberships,
    IndexArrayDescendantMemberships,
)
from .partition import condition_mask, split_memberships
from .root import RootRowMemberships
from .weights import WeightContainer

__all__ = [
    "BitSetDescendantMemberships",
    "ColumnIndexCache",
    "ColumnIndexEntry",
    "ColumnMemberships",
    "DataMemberships",
    "DescendantColumnMemberships",
    "IndexArrayDescendantMemberships",
    "RootColumnMemberships",
    "RootRowMemberships",
    "RowIndexManager",
    "WeightContainer",
    "build_column_entry",
    "condition_mask",
    "split_memberships",
]
