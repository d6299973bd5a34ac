"""Row universe of one tree-growth context and its column cache."""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

import numpy as np
import torch

from ..config import MembershipsConfig
from ..data import RowSample, as_index_array
from ..errors import ConstructionError, check_index, check_row_count
from .cache import ColumnIndexCache, ColumnIndexEntry, build_column_entry
from .cursor import DescendantColumnMemberships, RootColumnMemberships
from .index_manager import RowIndexManager
from .memberships import (
    BitSetDescendantMemberships,
    DataMemberships,
    IndexArrayDescendantMemberships,
    Selection,
    node_local_translation,
    normalize_selection,
    selection_count,
)
from .weights import WeightContainer


class RootRowMemberships(DataMemberships):
    """Sampled rows of one tree (or of several trees sharing a sample).

    Root-local index ``i`` is the position of the ``i``-th surviving original
    row in ascending order. The only mutable state is the column cache,
    which is safe to share between threads growing different nodes.

    Parameters
    ----------
    original_indices:
        Strictly ascending original row positions of the surviving rows.
    weights:
        Positive multiplicity of each surviving row, aligned with
        ``original_indices``.
    index_manager:
        Sorted-order mapping of the full table.
    config:
        Storage and cache settings; defaults to :class:`MembershipsConfig`.
    row_count_in_root:
        Row count reported by :meth:`row_count_in_root`. Set when this root
        was promoted from a deep descendant of another root.
    """

    def __init__(
        self,
        original_indices: np.ndarray | torch.Tensor | Sequence[int],
        weights: np.ndarray | torch.Tensor | Sequence[int],
        index_manager: RowIndexManager,
        config: Optional[MembershipsConfig] = None,
        *,
        row_count_in_root: Optional[int] = None,
    ) -> None:
        self.config = config or MembershipsConfig()
        self._logger = logging.getLogger(__name__)
        self._index_manager = index_manager

        originals = as_index_array(original_indices, "original indices").copy()
        n_rows = check_row_count(originals.size)
        if originals.size:
            if np.any(np.diff(originals) <= 0):
                raise ConstructionError("original indices must be strictly ascending")
            if int(originals[0]) < 0 or int(originals[-1]) >= index_manager.nr_rows:
                raise ConstructionError(
                    f"original indices must lie within [0, {index_manager.nr_rows})"
                )
        originals.flags.writeable = False
        self._original_indices = originals

        self._weights = WeightContainer(weights, dtype=self.config.weight_numpy_dtype)
        if len(self._weights) != n_rows:
            raise ConstructionError(
                f"{len(self._weights)} weights given for {n_rows} rows"
            )
        if n_rows and int(self._weights.all_weights().min()) == 0:
            raise ConstructionError("rows of a root must have a positive weight")

        local_of_original = np.full(index_manager.nr_rows, -1, dtype=np.int32)
        local_of_original[originals] = np.arange(n_rows, dtype=np.int32)
        local_of_original.flags.writeable = False
        self._local_of_original = local_of_original

        self._row_count_in_root = n_rows if row_count_in_root is None else int(row_count_in_root)
        self._cache = ColumnIndexCache(
            self._load_column,
            max_entries=self.config.cache_max_columns,
            weak_fallback=self.config.cache_weak_fallback,
        )

    @classmethod
    def from_sample(
        cls,
        sample: RowSample,
        index_manager: RowIndexManager,
        config: Optional[MembershipsConfig] = None,
    ) -> "RootRowMemberships":
        """Root over the rows drawn at least once in ``sample``."""
        if sample.nr_rows != index_manager.nr_rows:
            raise ConstructionError(
                f"sample covers {sample.nr_rows} rows but the table has {index_manager.nr_rows}"
            )
        rows = sample.included_rows()
        return cls(rows, sample.counts[rows], index_manager, config)

    @classmethod
    def full(
        cls,
        index_manager: RowIndexManager,
        config: Optional[MembershipsConfig] = None,
    ) -> "RootRowMemberships":
        """Root over every table row, each with weight one."""
        return cls.from_sample(RowSample.all_rows(index_manager.nr_rows), index_manager, config)

    # ------------------------------------------------------------------
    # root-level lookups
    # ------------------------------------------------------------------

    @property
    def root(self) -> "RootRowMemberships":
        return self

    @property
    def index_manager(self) -> RowIndexManager:
        return self._index_manager

    @property
    def weights(self) -> WeightContainer:
        return self._weights

    @property
    def cache(self) -> ColumnIndexCache:
        return self._cache

    def row_count(self) -> int:
        return int(self._original_indices.size)

    def row_count_in_root(self) -> int:
        return self._row_count_in_root

    def row_weight(self, local_index: int) -> int:
        return self._weights.weight(local_index)

    def original_index(self, local_index: int) -> int:
        idx = check_index(local_index, self._original_indices.size, "local index")
        return int(self._original_indices[idx])

    def all_row_weights(self) -> np.ndarray:
        return self._weights.all_weights()

    def local_index_of(self, original_index: int) -> int:
        """Root-local index of ``original_index`` or ``-1`` when not sampled."""
        row = check_index(original_index, self._local_of_original.size, "original row")
        return int(self._local_of_original[row])

    # DataMemberships view of the root node; node-local equals root-local here.

    def get_row_weight(self, index: int) -> int:
        return self.row_weight(index)

    def get_original_index(self, index: int) -> int:
        return self.original_index(index)

    def row_weights(self) -> np.ndarray:
        return self.all_row_weights()

    def original_indices(self) -> np.ndarray:
        return self._original_indices

    def root_local_indices(self) -> np.ndarray:
        return np.arange(self.row_count(), dtype=np.int32)

    def total_weight(self) -> int:
        return self._weights.total_weight

    # ------------------------------------------------------------------
    # columns
    # ------------------------------------------------------------------

    def column_entry(self, column: int) -> ColumnIndexEntry:
        column = check_index(column, self._index_manager.nr_columns, "column")
        return self._cache.get(column)

    def column_memberships(self, column: int) -> RootColumnMemberships:
        return RootColumnMemberships(self.column_entry(column))

    def get_column_memberships(self, column: int) -> RootColumnMemberships:
        return self.column_memberships(column)

    def descendant_column_memberships(
        self,
        column: int,
        subset: Selection,
        node_local_of_root: Optional[np.ndarray] = None,
    ) -> DescendantColumnMemberships:
        """Cursor over ``subset`` of the root rows in ``column``'s order.

        ``subset`` is a boolean mask over root-local indices or an array of
        root-local indices.
        """
        selection = normalize_selection(subset, self.row_count())
        entry = self.column_entry(column)
        if selection.dtype == np.bool_:
            restricted = entry.restricted_mask(selection)
        else:
            restricted = entry.restricted_mask_from_indices(selection)
        if node_local_of_root is None:
            node_local_of_root = node_local_translation(selection, self.row_count())
        return DescendantColumnMemberships.from_mask(entry, restricted, node_local_of_root)

    def _load_column(self, column: int) -> ColumnIndexEntry:
        return build_column_entry(
            column,
            self._index_manager.original_positions(column),
            self._local_of_original,
            self._original_indices,
            self._weights.all_weights(),
        )

    # ------------------------------------------------------------------
    # descendants
    # ------------------------------------------------------------------

    def create_child_memberships(
        self,
        mask: Selection,
        representation: Optional[str] = None,
    ) -> DataMemberships:
        return self.create_descendant_memberships(mask, representation=representation)

    def create_descendant_memberships(
        self,
        mask: Selection,
        representation: Optional[str] = None,
    ) -> DataMemberships:
        """Node view over the root-local rows selected by ``mask``.

        ``representation`` overrides the configured policy for this call
        (``"bitset"``, ``"indices"`` or ``"auto"``).
        """
        selection = normalize_selection(mask, self.row_count())
        count = selection_count(selection)
        n_root = self.row_count()

        if 0 < count < self.config.reroot_fraction * n_root:
            return self._reroot(selection, count)

        kind = representation or self.config.representation
        if kind == "auto":
            sparse = count < self.config.sparse_density_threshold * n_root
            kind = "indices" if sparse else "bitset"
        if kind == "bitset":
            if selection.dtype == np.bool_:
                mask_arr = selection
            else:
                mask_arr = np.zeros(n_root, dtype=bool)
                mask_arr[selection] = True
            child: DataMemberships = BitSetDescendantMemberships(self, mask_arr)
        elif kind == "indices":
            if selection.dtype == np.bool_:
                indices = np.flatnonzero(selection).astype(np.int32, copy=False)
            else:
                indices = selection
            child = IndexArrayDescendantMemberships(self, indices)
        else:
            raise ValueError(f"Unsupported representation: {kind}")

        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                json.dumps({"event": "descendant", "kind": kind, "rows": count, "root_rows": n_root})
            )
        return child

    def _reroot(self, selection: np.ndarray, count: int) -> "RootRowMemberships":
        if selection.dtype == np.bool_:
            selection = np.flatnonzero(selection).astype(np.int32, copy=False)
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(
                json.dumps(
                    {
                        "event": "reroot",
                        "rows": count,
                        "root_rows": self.row_count(),
                        "fraction": self.config.reroot_fraction,
                    }
                )
            )
        return RootRowMemberships(
            self._original_indices[selection],
            self._weights.take(selection),
            self._index_manager,
            self.config,
            row_count_in_root=self._row_count_in_root,
        )
