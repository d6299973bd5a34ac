"""Child masks for a chosen numeric split, built by scanning a column cursor."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ..errors import ConstructionError
from .memberships import DataMemberships


def condition_mask(
    memberships: DataMemberships,
    column: int,
    sorted_values: np.ndarray,
    threshold: float,
    *,
    length_non_missing: Optional[int] = None,
    missing_go_left: bool = False,
) -> np.ndarray:
    """Return the node-local mask of rows with ``value <= threshold``.

    ``sorted_values[p]`` is the column value at column position ``p``.
    Positions at or beyond ``length_non_missing`` hold missing values and
    follow ``missing_go_left``.
    """
    values = np.asarray(sorted_values)
    nr_rows = memberships.root.index_manager.nr_rows
    if values.ndim != 1 or values.size < nr_rows:
        raise ConstructionError(
            f"sorted_values must list {nr_rows} column values, got shape {values.shape}"
        )
    if length_non_missing is None:
        length_non_missing = nr_rows

    in_child = np.zeros(memberships.row_count(), dtype=bool)
    cursor = memberships.get_column_memberships(column)
    cursor.reset()
    if not cursor.next():
        return in_child

    while True:
        index_in_column = cursor.index_in_column()
        if index_in_column >= length_non_missing:
            break
        if values[index_in_column] <= threshold:
            in_child[cursor.index_in_data_memberships()] = True
        if not cursor.next():
            return in_child

    # cursor sits on the first missing value
    if missing_go_left:
        while True:
            in_child[cursor.index_in_data_memberships()] = True
            if not cursor.next():
                break
    return in_child


def split_memberships(
    memberships: DataMemberships,
    column: int,
    sorted_values: np.ndarray,
    threshold: float,
    *,
    length_non_missing: Optional[int] = None,
    missing_go_left: bool = False,
    representation: Optional[str] = None,
) -> Tuple[DataMemberships, DataMemberships]:
    """Partition ``memberships`` into left/right children for ``value <= threshold``."""
    left = condition_mask(
        memberships,
        column,
        sorted_values,
        threshold,
        length_non_missing=length_non_missing,
        missing_go_left=missing_go_left,
    )
    left_child = memberships.create_child_memberships(left, representation=representation)
    right_child = memberships.create_child_memberships(~left, representation=representation)
    return left_child, right_child
