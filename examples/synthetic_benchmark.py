"""Benchmark node growth over row memberships on synthetic data."""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from treememberships import MembershipsConfig, RootRowMemberships, RowIndexManager, RowSample
from treememberships.core import DataMemberships, split_memberships


N_SAMPLES = 50_000
N_FEATURES = 20
SEED = 123
MAX_DEPTH = 8


@dataclass
class BenchmarkResult:
    name: str
    grow_time: float
    nodes: int
    scanned_rows: int


def generate_data() -> tuple[np.ndarray, RowIndexManager, RowSample]:
    """Random features, their sorted orders and one bootstrap draw."""
    rng = np.random.default_rng(SEED)
    X = rng.normal(size=(N_SAMPLES, N_FEATURES)).astype(np.float32)
    orders = [np.argsort(X[:, j], kind="stable") for j in range(N_FEATURES)]
    manager = RowIndexManager.from_sorted_positions(orders)
    sample = RowSample.from_drawn_rows(rng.integers(0, N_SAMPLES, size=N_SAMPLES), N_SAMPLES)
    return X, manager, sample


def grow(root: RootRowMemberships, sorted_values: List[np.ndarray]) -> tuple[int, int]:
    """Split every node at the median of a rotating column down to ``MAX_DEPTH``."""
    nodes = 0
    scanned = 0
    stack: List[tuple[DataMemberships, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        nodes += 1
        if depth >= MAX_DEPTH or node.row_count() < 2:
            continue
        column = depth % N_FEATURES
        cursor = node.get_column_memberships(column)
        values = []
        while cursor.next():
            values.append(sorted_values[column][cursor.index_in_column()])
        scanned += len(values)
        threshold = float(np.median(values))
        left, right = split_memberships(node, column, sorted_values[column], threshold)
        if left.row_count() == 0 or right.row_count() == 0:
            continue
        stack.append((left, depth + 1))
        stack.append((right, depth + 1))
    return nodes, scanned


def benchmark(name: str, grow_fn: Callable[[], tuple[int, int]]) -> BenchmarkResult:
    t0 = time.perf_counter()
    nodes, scanned = grow_fn()
    grow_time = time.perf_counter() - t0
    return BenchmarkResult(name=name, grow_time=grow_time, nodes=nodes, scanned_rows=scanned)


if __name__ == "__main__":
    X, manager, sample = generate_data()
    sorted_values = [X[manager.original_positions(j), j] for j in range(N_FEATURES)]

    configs = {
        "bitset": MembershipsConfig(representation="bitset"),
        "indices": MembershipsConfig(representation="indices"),
        "auto": MembershipsConfig(),
        "auto+reroot": MembershipsConfig(reroot_fraction=0.05),
    }
    results: List[BenchmarkResult] = []
    for name, config in configs.items():
        root = RootRowMemberships.from_sample(sample, manager, config)
        results.append(benchmark(name, lambda: grow(root, sorted_values)))

    print("Policy        Grow (s)   Nodes   Rows scanned")
    print("-" * 46)
    for res in results:
        print(f"{res.name:<12} {res.grow_time:>8.3f} {res.nodes:>7d} {res.scanned_rows:>14d}")
