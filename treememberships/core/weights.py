"""Compact storage of bootstrap weights in root-local order."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import torch

from ..data import ensure_numpy
from ..errors import ConstructionError, WeightOverflowError, check_index


class WeightContainer:
    """Integer multiplicity per root-local row, one small integer each.

    Parameters
    ----------
    weights:
        Weight of each root-local row.
    dtype:
        Unsigned storage dtype; weights above its maximum raise
        :class:`WeightOverflowError` instead of wrapping around.
    """

    def __init__(
        self,
        weights: np.ndarray | torch.Tensor | Sequence[int],
        dtype: np.dtype | type = np.uint8,
    ) -> None:
        arr = ensure_numpy(weights)
        if arr.ndim != 1:
            raise ConstructionError("weights must be a 1D array")
        dtype = np.dtype(dtype)
        if arr.size:
            if not np.issubdtype(arr.dtype, np.integer):
                raise ConstructionError(f"weights must be integers, got {arr.dtype}")
            low = int(arr.min())
            high = int(arr.max())
            if low < 0:
                raise ConstructionError("weights must be non-negative")
            limit = int(np.iinfo(dtype).max)
            if high > limit:
                raise WeightOverflowError(
                    f"weight {high} does not fit {dtype.name} (max {limit})"
                )
        self._weights = arr.astype(dtype, copy=True)
        self._weights.flags.writeable = False
        self._total = int(self._weights.sum(dtype=np.int64))

    def __len__(self) -> int:
        return int(self._weights.size)

    @property
    def dtype(self) -> np.dtype:
        return self._weights.dtype

    @property
    def total_weight(self) -> int:
        return self._total

    def weight(self, local_index: int) -> int:
        return int(self._weights[check_index(local_index, self._weights.size, "local index")])

    def all_weights(self) -> np.ndarray:
        """Read-only weights in root-local order."""
        return self._weights

    def take(self, local_indices: np.ndarray) -> np.ndarray:
        """Weights of ``local_indices`` (index array or boolean mask)."""
        return self._weights[local_indices]
