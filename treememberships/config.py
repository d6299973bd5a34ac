"""Configuration objects for the memberships layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

_WEIGHT_DTYPES = {"uint8": np.uint8, "uint16": np.uint16, "uint32": np.uint32}


@dataclass(frozen=True, slots=True)
class MembershipsConfig:
    """Knobs steering how row memberships are stored and cached.

    Parameters
    ----------
    weight_dtype:
        Unsigned integer encoding used to store bootstrap weights. Bootstrap
        counts are small, so ``"uint8"`` (one byte per row) is the default;
        a count above the encoding's maximum fails construction.
    representation:
        Storage of descendant nodes. ``"bitset"`` keeps a boolean mask over
        root rows, ``"indices"`` keeps an explicit array of root-local
        indices and ``"auto"`` picks ``"indices"`` once the subset density
        drops below ``sparse_density_threshold``.
    sparse_density_threshold:
        Fraction of root rows under which ``"auto"`` switches to the
        index-array representation.
    reroot_fraction:
        When a requested descendant keeps fewer than this fraction of its
        root's rows it is promoted to a fresh root with its own (smaller)
        column cache. ``0`` disables re-rooting.
    cache_max_columns:
        Number of column entries held with strong references (LRU order).
        ``None`` keeps every computed column.
    cache_weak_fallback:
        Keep entries dropped from the strong tier reachable through weak
        references while some cursor still uses them.
    """

    weight_dtype: Literal["uint8", "uint16", "uint32"] = "uint8"
    representation: Literal["auto", "bitset", "indices"] = "auto"
    sparse_density_threshold: float = 0.1
    reroot_fraction: float = 0.0
    cache_max_columns: int | None = None
    cache_weak_fallback: bool = True

    def __post_init__(self) -> None:
        if self.weight_dtype not in _WEIGHT_DTYPES:
            raise ValueError(f"Unsupported weight_dtype: {self.weight_dtype}")
        if self.representation not in ("auto", "bitset", "indices"):
            raise ValueError(f"Unsupported representation: {self.representation}")
        if not 0.0 <= self.sparse_density_threshold <= 1.0:
            raise ValueError("sparse_density_threshold must lie within [0, 1]")
        if not 0.0 <= self.reroot_fraction < 1.0:
            raise ValueError("reroot_fraction must lie within [0, 1)")
        if self.cache_max_columns is not None and self.cache_max_columns <= 0:
            raise ValueError("cache_max_columns must be positive or None")

    @property
    def weight_numpy_dtype(self) -> np.dtype:
        return np.dtype(_WEIGHT_DTYPES[self.weight_dtype])
