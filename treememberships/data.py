"""Adapters for the row sample and sorted column data handed in by the trainer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import torch

from .errors import INT32_MAX, ConstructionError, check_index, check_row_count


def ensure_numpy(array: np.ndarray | torch.Tensor | Sequence[int]) -> np.ndarray:
    """Convert ``array`` to an ``np.ndarray`` without copying when possible."""

    if isinstance(array, np.ndarray):
        return np.asarray(array)
    if isinstance(array, torch.Tensor):
        return array.detach().cpu().numpy()
    return np.asarray(array)


def as_index_array(array: np.ndarray | torch.Tensor | Sequence[int], what: str) -> np.ndarray:
    """Return a 1-D ``int32`` copy-free view of integer positions in ``array``."""

    arr = ensure_numpy(array)
    if arr.ndim != 1:
        raise ConstructionError(f"{what} must be a 1D array")
    if arr.size == 0:
        return np.empty(0, dtype=np.int32)
    if not np.issubdtype(arr.dtype, np.integer):
        raise ConstructionError(f"{what} must contain integer positions, got {arr.dtype}")
    check_row_count(arr.size, what)
    # range check on the input dtype; the int32 cast below would wrap
    low = int(arr.min())
    high = int(arr.max())
    if low < 0 or high > INT32_MAX:
        bad = low if low < 0 else high
        raise ConstructionError(f"{what} holds position {bad} outside [0, {INT32_MAX}]")
    return arr.astype(np.int32, copy=False)


@dataclass(frozen=True, slots=True)
class RowSample:
    """Per-row survival counts of one bootstrap (or subsampling) draw.

    ``counts[r]`` is how often original row ``r`` was drawn; zero means the
    row did not make it into the sample.
    """

    counts: np.ndarray

    @classmethod
    def from_counts(cls, counts: np.ndarray | torch.Tensor | Sequence[int]) -> "RowSample":
        arr = ensure_numpy(counts)
        if arr.ndim != 1:
            raise ConstructionError("sample counts must be a 1D array")
        if arr.size and not np.issubdtype(arr.dtype, np.integer):
            raise ConstructionError(f"sample counts must be integers, got {arr.dtype}")
        arr = arr.astype(np.int64, copy=False)
        if arr.size and int(arr.min()) < 0:
            raise ConstructionError("sample counts must be non-negative")
        check_row_count(arr.size)
        return cls(arr)

    @classmethod
    def from_drawn_rows(
        cls,
        rows: Iterable[int] | np.ndarray | torch.Tensor,
        nr_rows: int,
    ) -> "RowSample":
        """Build a sample from the multiset of drawn original row indices."""
        if not isinstance(rows, (np.ndarray, torch.Tensor)):
            rows = list(rows)
        drawn = np.asarray(ensure_numpy(rows), dtype=np.int64).reshape(-1)
        if drawn.size and (int(drawn.min()) < 0 or int(drawn.max()) >= nr_rows):
            raise ConstructionError(f"drawn rows must lie within [0, {nr_rows})")
        return cls.from_counts(np.bincount(drawn, minlength=nr_rows))

    @classmethod
    def all_rows(cls, nr_rows: int) -> "RowSample":
        return cls.from_counts(np.ones(int(nr_rows), dtype=np.int64))

    @property
    def nr_rows(self) -> int:
        return int(self.counts.size)

    @property
    def total_count(self) -> int:
        return int(self.counts.sum())

    def count_for(self, original_index: int) -> int:
        return int(self.counts[check_index(original_index, self.nr_rows, "row")])

    def included_rows(self) -> np.ndarray:
        """Ascending original indices of rows with a positive count."""
        return np.flatnonzero(self.counts > 0).astype(np.int32, copy=False)


@dataclass(frozen=True, slots=True)
class SortedColumns:
    """Sorted order of every attribute column, as produced upstream.

    ``sorted_positions[c][p]`` is the original row sitting at rank ``p`` of
    column ``c``. Sorting happens before this object is built.
    """

    nr_rows: int
    sorted_positions: tuple[np.ndarray, ...]

    @classmethod
    def from_sorted_positions(
        cls,
        columns: Iterable[np.ndarray | torch.Tensor | Sequence[int]],
        nr_rows: int | None = None,
    ) -> "SortedColumns":
        arrays = tuple(
            as_index_array(col, f"sorted positions of column {c}") for c, col in enumerate(columns)
        )
        if nr_rows is None:
            if not arrays:
                raise ConstructionError("nr_rows is required when no columns are given")
            nr_rows = int(arrays[0].size)
        nr_rows = check_row_count(nr_rows)
        for c, arr in enumerate(arrays):
            if arr.size != nr_rows:
                raise ConstructionError(
                    f"column {c} lists {arr.size} rows but the table has {nr_rows}"
                )
            if nr_rows and not _is_permutation(arr, nr_rows):
                raise ConstructionError(f"column {c} is not a permutation of the table rows")
        return cls(nr_rows=nr_rows, sorted_positions=arrays)

    @property
    def nr_columns(self) -> int:
        return len(self.sorted_positions)


def _is_permutation(arr: np.ndarray, n: int) -> bool:
    if int(arr.min()) < 0 or int(arr.max()) >= n:
        return False
    seen = np.zeros(n, dtype=bool)
    seen[arr] = True
    return bool(seen.all())
