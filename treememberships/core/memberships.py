"""Per-node views over the rows of a root, in two storage flavours."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Sequence, Union

import numpy as np
import torch

from ..data import ensure_numpy
from ..errors import IndexOutOfRangeError, check_index, check_row_count
from .cursor import ColumnMemberships, DescendantColumnMemberships

if TYPE_CHECKING:
    from .root import RootRowMemberships

Selection = Union[np.ndarray, torch.Tensor, Sequence[int], Iterable[int]]


def normalize_selection(selection: Selection, size: int) -> np.ndarray:
    """Validate a row subset given as a boolean mask or as integer indices.

    Returns either the boolean mask (length ``size``) or the sorted,
    de-duplicated ``int32`` indices.
    """
    if isinstance(selection, (set, frozenset)):
        selection = sorted(selection)
    elif not isinstance(selection, (np.ndarray, torch.Tensor, list, tuple)):
        selection = list(selection)
    arr = ensure_numpy(selection)
    if arr.ndim != 1:
        raise IndexOutOfRangeError("row subset must be a 1D mask or index array")
    if arr.dtype == np.bool_:
        if arr.size != size:
            raise IndexOutOfRangeError(f"mask covers {arr.size} rows but the node has {size}")
        return arr
    if arr.size == 0:
        return np.empty(0, dtype=np.int32)
    if not np.issubdtype(arr.dtype, np.integer):
        raise IndexOutOfRangeError(f"row subset must be boolean or integer, got {arr.dtype}")
    low = int(arr.min())
    high = int(arr.max())
    if low < 0 or high >= size:
        bad = low if low < 0 else high
        raise IndexOutOfRangeError(f"local index {bad} out of range [0, {size})")
    return np.unique(arr).astype(np.int32, copy=False)


def selection_count(selection: np.ndarray) -> int:
    if selection.dtype == np.bool_:
        return check_row_count(np.count_nonzero(selection), "mask cardinality")
    return check_row_count(selection.size, "subset size")


def node_local_translation(selection: np.ndarray, root_size: int) -> np.ndarray:
    """Map root-local indices to node-local ones for the rows in ``selection``.

    Entries of rows outside the subset are meaningless and never read.
    """
    if selection.dtype == np.bool_:
        local = np.cumsum(selection, dtype=np.int32) - 1
    else:
        local = np.full(root_size, -1, dtype=np.int32)
        local[selection] = np.arange(selection.size, dtype=np.int32)
    local.flags.writeable = False
    return local


class DataMemberships(ABC):
    """Rows present at one tree node, with weights and column cursors.

    Node-local indices run over ``[0, row_count())`` in ascending root-local
    (and hence original) order.
    """

    @property
    @abstractmethod
    def root(self) -> "RootRowMemberships":
        """Root every index of this node resolves through."""

    @abstractmethod
    def row_count(self) -> int:
        """Number of distinct rows at this node."""

    @abstractmethod
    def root_local_indices(self) -> np.ndarray:
        """``arr[node_local] = root_local`` for every row of this node."""

    @abstractmethod
    def get_column_memberships(self, column: int) -> ColumnMemberships:
        """Fresh cursor over this node's rows in ``column``'s sorted order."""

    @abstractmethod
    def get_row_weight(self, index: int) -> int:
        ...

    @abstractmethod
    def get_original_index(self, index: int) -> int:
        ...

    @abstractmethod
    def row_weights(self) -> np.ndarray:
        ...

    @abstractmethod
    def original_indices(self) -> np.ndarray:
        ...

    def row_count_in_root(self) -> int:
        """Row count of the tree's root node."""
        return self.root.row_count_in_root()

    def total_weight(self) -> int:
        return int(self.row_weights().sum(dtype=np.int64))

    def create_child_memberships(
        self,
        mask: Selection,
        representation: Optional[str] = None,
    ) -> "DataMemberships":
        """Child view over the node-local rows selected by ``mask``.

        The child is always built directly against the root.
        """
        selection = normalize_selection(mask, self.row_count())
        root_local = self.root_local_indices()[selection]
        return self.root.create_descendant_memberships(root_local, representation=representation)

    def __len__(self) -> int:
        return self.row_count()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(rows={self.row_count()}, root_rows={self.root.row_count()})"


class _DescendantMemberships(DataMemberships):
    def __init__(self, root: "RootRowMemberships", selection: np.ndarray) -> None:
        self._root = root
        self._selection = selection
        self._node_local: Optional[np.ndarray] = None
        self._column_members: Dict[int, np.ndarray] = {}

    @property
    def root(self) -> "RootRowMemberships":
        return self._root

    def get_column_memberships(self, column: int) -> ColumnMemberships:
        members = self._column_members.get(int(column))
        if members is not None:
            return DescendantColumnMemberships(
                self._root.column_entry(column), members, self._node_local_of_root()
            )
        cursor = self._root.descendant_column_memberships(
            column, self._selection, self._node_local_of_root()
        )
        self._column_members[int(column)] = cursor.members
        return cursor

    def _node_local_of_root(self) -> np.ndarray:
        if self._node_local is None:
            self._node_local = node_local_translation(self._selection, self._root.row_count())
        return self._node_local


class BitSetDescendantMemberships(_DescendantMemberships):
    """Descendant stored as a boolean mask over root-local rows.

    Suits large, short-lived subsets right below the root. Single-row
    lookups scan the mask to the requested member, trading time for not
    keeping an explicit index array around.
    """

    def __init__(self, root: "RootRowMemberships", mask: np.ndarray) -> None:
        if mask.dtype != np.bool_ or mask.size != root.row_count():
            raise IndexOutOfRangeError(
                f"mask covers {mask.size} rows but the root has {root.row_count()}"
            )
        mask = mask.copy()
        mask.flags.writeable = False
        super().__init__(root, mask)
        self._count = selection_count(mask)

    @property
    def mask(self) -> np.ndarray:
        return self._selection

    def row_count(self) -> int:
        return self._count

    def root_local_indices(self) -> np.ndarray:
        return np.flatnonzero(self._selection).astype(np.int32, copy=False)

    def get_row_weight(self, index: int) -> int:
        return self._root.row_weight(self._nth_member(index))

    def get_original_index(self, index: int) -> int:
        return self._root.original_index(self._nth_member(index))

    def row_weights(self) -> np.ndarray:
        return self._root.weights.take(self._selection)

    def original_indices(self) -> np.ndarray:
        return self._root.original_indices()[self._selection]

    def _nth_member(self, index: int) -> int:
        index = check_index(index, self._count, "local index")
        seen = np.cumsum(self._selection, dtype=np.int64)
        return int(np.searchsorted(seen, index + 1, side="left"))


class IndexArrayDescendantMemberships(_DescendantMemberships):
    """Descendant stored as ``arr[node_local] = root_local``.

    Suits the small subsets found deep in a tree; every lookup is O(1).
    """

    def __init__(self, root: "RootRowMemberships", indices: np.ndarray) -> None:
        indices = np.asarray(indices, dtype=np.int32)
        if indices.size and (
            int(indices[0]) < 0
            or int(indices[-1]) >= root.row_count()
            or np.any(np.diff(indices) <= 0)
        ):
            raise IndexOutOfRangeError("root-local indices must be strictly ascending and in range")
        indices = indices.copy()
        indices.flags.writeable = False
        super().__init__(root, indices)

    @property
    def indices(self) -> np.ndarray:
        return self._selection

    def row_count(self) -> int:
        return int(self._selection.size)

    def root_local_indices(self) -> np.ndarray:
        return self._selection

    def get_row_weight(self, index: int) -> int:
        local = check_index(index, self._selection.size, "local index")
        return self._root.row_weight(int(self._selection[local]))

    def get_original_index(self, index: int) -> int:
        local = check_index(index, self._selection.size, "local index")
        return self._root.original_index(int(self._selection[local]))

    def row_weights(self) -> np.ndarray:
        return self._root.weights.take(self._selection)

    def original_indices(self) -> np.ndarray:
        return self._root.original_indices()[self._selection]
