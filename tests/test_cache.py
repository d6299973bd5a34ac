from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from treememberships.config import MembershipsConfig
from treememberships.core import RootRowMemberships, RowIndexManager
from treememberships.core.cache import ColumnIndexCache, build_column_entry


def make_loader(delay: float = 0.0):
    sorted_originals = [
        np.array([3, 1, 0, 4, 2]),
        np.array([0, 1, 2, 3, 4]),
        np.array([4, 3, 2, 1, 0]),
    ]
    local_of_original = np.array([0, -1, 1, 2, 3], dtype=np.int32)
    originals = np.array([0, 2, 3, 4], dtype=np.int32)
    weights = np.array([2, 3, 1, 2], dtype=np.uint8)
    calls: list[int] = []
    lock = threading.Lock()

    def loader(column: int):
        with lock:
            calls.append(column)
        if delay:
            time.sleep(delay)
        return build_column_entry(column, sorted_originals[column], local_of_original, originals, weights)

    return loader, calls


def test_build_column_entry_filters_full_order():
    loader, _ = make_loader()
    entry = loader(0)
    np.testing.assert_array_equal(entry.root_local_indices, np.array([2, 0, 3, 1]))
    np.testing.assert_array_equal(entry.column_positions, np.array([0, 2, 3, 4]))
    np.testing.assert_array_equal(entry.original_indices, np.array([3, 0, 4, 2]))
    np.testing.assert_array_equal(entry.weights, np.array([1, 2, 2, 3]))
    np.testing.assert_array_equal(entry.restricted_position, np.array([1, 3, 0, 2]))
    mask = np.array([True, False, True, False])
    np.testing.assert_array_equal(entry.restricted_mask(mask), np.array([True, True, False, False]))
    np.testing.assert_array_equal(
        entry.restricted_mask_from_indices(np.array([0, 2])), entry.restricted_mask(mask)
    )


def test_single_flight_under_concurrency():
    loader, calls = make_loader(delay=0.05)
    cache = ColumnIndexCache(loader)
    with ThreadPoolExecutor(max_workers=8) as pool:
        entries = list(pool.map(lambda _: cache.get(0), range(16)))
    assert calls == [0]
    assert cache.computations == 1
    assert all(entry is entries[0] for entry in entries)


def test_concurrent_requests_for_different_columns():
    loader, calls = make_loader(delay=0.02)
    cache = ColumnIndexCache(loader)
    with ThreadPoolExecutor(max_workers=8) as pool:
        entries = list(pool.map(lambda i: cache.get(i % 2), range(16)))
    assert sorted(calls) == [0, 1]
    assert {entry.column for entry in entries} == {0, 1}


def test_eviction_recomputes_identical_entry():
    loader, calls = make_loader()
    cache = ColumnIndexCache(loader, weak_fallback=False)
    first = cache.get(0)
    assert cache.evict(0)
    assert not cache.evict(0)
    second = cache.get(0)
    assert calls == [0, 0]
    assert second is not first
    np.testing.assert_array_equal(second.root_local_indices, first.root_local_indices)
    np.testing.assert_array_equal(second.column_positions, first.column_positions)


def test_bounded_cache_keeps_referenced_entries_weakly():
    loader, calls = make_loader()
    cache = ColumnIndexCache(loader, max_entries=1)
    held = cache.get(0)
    cache.get(1)
    assert len(cache) == 1
    assert cache.get(0) is held
    assert calls == [0, 1]


def test_bounded_cache_without_weak_tier_recomputes():
    loader, calls = make_loader()
    cache = ColumnIndexCache(loader, max_entries=1, weak_fallback=False)
    cache.get(0)
    cache.get(1)
    cache.get(0)
    assert calls == [0, 1, 0]
    assert cache.hits == 0
    assert cache.misses == 3
    assert cache.hit_rate() == 0.0


def test_hit_and_miss_counters():
    loader, calls = make_loader()
    cache = ColumnIndexCache(loader)
    assert cache.hit_rate() == 0.0
    for _ in range(3):
        cache.get(0)
    cache.get(1)
    assert calls == [0, 1]
    assert cache.hits == 2
    assert cache.misses == 2
    assert cache.computations == 2
    assert cache.hit_rate() == pytest.approx(0.5)


def test_membership_check_keeps_lru_order():
    loader, calls = make_loader()
    cache = ColumnIndexCache(loader, max_entries=2, weak_fallback=False)
    cache.get(0)
    cache.get(1)
    assert 0 in cache
    cache.get(2)
    assert calls == [0, 1, 2]
    assert 0 not in cache
    assert 1 in cache
    assert 2 in cache
    assert cache.hits == 0


def test_membership_check_does_not_promote_weak_entries():
    loader, _ = make_loader()
    cache = ColumnIndexCache(loader, max_entries=1)
    held = cache.get(0)
    cache.get(1)
    assert 0 in cache
    assert len(cache) == 1
    assert 1 in cache
    assert cache.get(0) is held


def test_loader_failure_propagates_and_caches_nothing():
    def loader(column: int):
        raise RuntimeError("boom")

    cache = ColumnIndexCache(loader)
    with pytest.raises(RuntimeError):
        cache.get(0)
    assert 0 not in cache
    assert cache.computations == 0


def test_root_cache_shared_by_parallel_node_growth():
    rng = np.random.default_rng(11)
    X = rng.normal(size=(200, 4))
    manager = RowIndexManager.from_sorted_positions([np.argsort(X[:, j], kind="stable") for j in range(4)])
    root = RootRowMemberships.full(manager, MembershipsConfig(cache_max_columns=2))
    masks = [rng.random(200) < 0.5 for _ in range(8)]

    def grow(mask):
        child = root.create_child_memberships(mask)
        out = []
        for col in range(4):
            cursor = child.get_column_memberships(col)
            seq = []
            while cursor.next():
                seq.append(cursor.original_index())
            out.append(seq)
        return out

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(grow, masks))
    for mask, result in zip(masks, results):
        assert result == grow(mask)
        for col, seq in enumerate(result):
            expected = [int(r) for r in manager.original_positions(col) if mask[r]]
            assert seq == expected
