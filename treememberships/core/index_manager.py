"""Per-column translation between original row positions and sorted ranks."""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from ..data import SortedColumns
from ..errors import check_index


class RowIndexManager:
    """Bidirectional original-row / column-rank mapping for every column.

    Built once per trainer run from the full (unsampled) sorted columns and
    read-only afterwards, so it can be shared across threads freely.
    """

    def __init__(self, columns: SortedColumns) -> None:
        self._nr_rows = columns.nr_rows
        self._original_positions: tuple[np.ndarray, ...] = tuple(
            _read_only(arr) for arr in columns.sorted_positions
        )
        inverse: list[np.ndarray] = []
        for arr in self._original_positions:
            positions = np.empty(self._nr_rows, dtype=np.int32)
            positions[arr] = np.arange(self._nr_rows, dtype=np.int32)
            inverse.append(_read_only(positions))
        self._positions_in_column = tuple(inverse)

    @classmethod
    def from_sorted_positions(
        cls,
        columns: Iterable[np.ndarray | Sequence[int]],
        nr_rows: int | None = None,
    ) -> "RowIndexManager":
        return cls(SortedColumns.from_sorted_positions(columns, nr_rows=nr_rows))

    @property
    def nr_rows(self) -> int:
        return self._nr_rows

    @property
    def nr_columns(self) -> int:
        return len(self._original_positions)

    def positions_in_column(self, column: int) -> np.ndarray:
        """Return ``arr[original_pos] = column_pos`` for ``column``."""
        return self._positions_in_column[self._check_column(column)]

    def original_positions(self, column: int) -> np.ndarray:
        """Return ``arr[column_pos] = original_pos`` for ``column``."""
        return self._original_positions[self._check_column(column)]

    def position_in_column(self, column: int, original_position: int) -> int:
        positions = self.positions_in_column(column)
        return int(positions[check_index(original_position, self._nr_rows, "original row")])

    def original_position(self, column: int, column_position: int) -> int:
        originals = self.original_positions(column)
        return int(originals[check_index(column_position, self._nr_rows, "column position")])

    def _check_column(self, column: int) -> int:
        return check_index(column, len(self._original_positions), "column")


def _read_only(arr: np.ndarray) -> np.ndarray:
    view = arr.view()
    view.flags.writeable = False
    return view
