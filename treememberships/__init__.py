"""treememberships: row/column membership indexing for tree growth."""

from .config import MembershipsConfig
from .core import DataMemberships, RootRowMemberships, RowIndexManager
from .data import RowSample, SortedColumns

__all__ = [
    "DataMemberships",
    "MembershipsConfig",
    "RootRowMemberships",
    "RowIndexManager",
    "RowSample",
    "SortedColumns",
]
