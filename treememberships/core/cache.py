"""Per-column sorted-position cache shared by all nodes grown from one root."""

from __future__ import annotations

import logging
import threading
import weakref
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from ..errors import check_row_count

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ColumnIndexEntry:
    """Column order restricted to the rows of one root.

    All arrays except ``restricted_position`` are indexed by the restricted
    position ``p`` (rank among root rows, ascending column position).
    """

    column: int
    column_positions: np.ndarray
    root_local_indices: np.ndarray
    original_indices: np.ndarray
    weights: np.ndarray
    restricted_position: np.ndarray

    @property
    def size(self) -> int:
        return int(self.root_local_indices.size)

    def restricted_mask(self, root_mask: np.ndarray) -> np.ndarray:
        """Turn a boolean mask over root-local rows into one over positions ``p``."""
        return root_mask[self.root_local_indices]

    def restricted_mask_from_indices(self, root_local: np.ndarray) -> np.ndarray:
        """Turn explicit root-local indices into a boolean mask over positions ``p``."""
        mask = np.zeros(self.size, dtype=bool)
        mask[self.restricted_position[root_local]] = True
        return mask


def build_column_entry(
    column: int,
    sorted_originals: np.ndarray,
    root_local_of_original: np.ndarray,
    original_indices: np.ndarray,
    weights: np.ndarray,
) -> ColumnIndexEntry:
    """Filter a full column order down to the root rows.

    ``sorted_originals`` is the column's ``column_pos -> original`` order and
    ``root_local_of_original`` maps original rows to root-local indices
    (``-1`` for rows outside the root). Filtering keeps relative order, so
    no sorting is needed.
    """
    local_in_order = root_local_of_original[sorted_originals]
    keep = local_in_order >= 0
    root_local = local_in_order[keep].astype(np.int32, copy=False)
    n_root = check_row_count(root_local.size, "restricted column size")
    column_positions = np.flatnonzero(keep).astype(np.int32, copy=False)
    restricted = np.empty(n_root, dtype=np.int32)
    restricted[root_local] = np.arange(n_root, dtype=np.int32)
    arrays = (
        column_positions,
        root_local,
        original_indices[root_local],
        weights[root_local],
        restricted,
    )
    for arr in arrays:
        arr.flags.writeable = False
    return ColumnIndexEntry(column, *arrays)


class ColumnIndexCache:
    """Compute-if-absent cache with single-flight loading per column.

    Entries live in a strong LRU tier (optionally bounded). Entries pushed
    out of it stay reachable through weak references for as long as a
    cursor still holds them; once collected they are recomputed on the
    next request, which yields an identical entry.
    """

    def __init__(
        self,
        loader: Callable[[int], ColumnIndexEntry],
        max_entries: Optional[int] = None,
        weak_fallback: bool = True,
    ) -> None:
        self._loader = loader
        self._max_entries = max_entries
        self._strong: "OrderedDict[int, ColumnIndexEntry]" = OrderedDict()
        self._weak: Optional[weakref.WeakValueDictionary] = (
            weakref.WeakValueDictionary() if weak_fallback else None
        )
        self._lock = threading.Lock()
        self._column_locks: Dict[int, threading.Lock] = {}
        self.hits = 0
        self.misses = 0
        self.computations = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._strong)

    def __contains__(self, column: int) -> bool:
        # peek only: leaves LRU order and both tiers untouched
        column = int(column)
        with self._lock:
            if column in self._strong:
                return True
            return self._weak is not None and self._weak.get(column) is not None

    def get(self, column: int) -> ColumnIndexEntry:
        column = int(column)
        with self._lock:
            entry = self._lookup(column)
            if entry is not None:
                self.hits += 1
                return entry
            self.misses += 1
            column_lock = self._column_locks.setdefault(column, threading.Lock())

        with column_lock:
            # another thread may have filled the entry while we waited
            with self._lock:
                entry = self._lookup(column)
            if entry is not None:
                return entry
            entry = self._loader(column)
            with self._lock:
                self.computations += 1
                self._store(column, entry)
            logger.debug("computed column index for column %d (%d rows)", column, entry.size)
            return entry

    def evict(self, column: int) -> bool:
        """Drop ``column`` from both tiers; return whether it was present."""
        with self._lock:
            found = self._strong.pop(int(column), None) is not None
            if self._weak is not None:
                found = self._weak.pop(int(column), None) is not None or found
        if found:
            logger.debug("evicted column index for column %d", int(column))
        return found

    def clear(self) -> None:
        with self._lock:
            self._strong.clear()
            if self._weak is not None:
                self._weak.clear()

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def _lookup(self, column: int) -> Optional[ColumnIndexEntry]:
        entry = self._strong.get(column)
        if entry is not None:
            self._strong.move_to_end(column)
            return entry
        if self._weak is None:
            return None
        entry = self._weak.get(column)
        if entry is not None:
            self._store(column, entry)
        return entry

    def _store(self, column: int, entry: ColumnIndexEntry) -> None:
        self._strong[column] = entry
        self._strong.move_to_end(column)
        if self._weak is not None:
            self._weak[column] = entry
        if self._max_entries is not None:
            while len(self._strong) > self._max_entries:
                dropped, _ = self._strong.popitem(last=False)
                logger.debug("column index for column %d left the strong cache tier", dropped)
