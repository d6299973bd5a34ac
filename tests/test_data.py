import numpy as np
import pandas as pd
import pytest
import torch

from treememberships.data import RowSample, SortedColumns, ensure_numpy
from treememberships.errors import (
    ConstructionError,
    IndexOutOfRangeError,
    InternalOverflowError,
    check_row_count,
)


def test_ensure_numpy_accepts_tensors_and_sequences():
    np.testing.assert_array_equal(ensure_numpy(torch.tensor([1, 2, 3])), np.array([1, 2, 3]))
    np.testing.assert_array_equal(ensure_numpy([4, 5]), np.array([4, 5]))


def test_row_sample_from_counts():
    sample = RowSample.from_counts([0, 2, 0, 1, 3, 1])
    assert sample.nr_rows == 6
    assert sample.total_count == 7
    assert sample.count_for(4) == 3
    np.testing.assert_array_equal(sample.included_rows(), np.array([1, 3, 4, 5]))
    with pytest.raises(IndexOutOfRangeError):
        sample.count_for(6)


def test_row_sample_from_drawn_rows_matches_bincount():
    sample = RowSample.from_drawn_rows([4, 1, 4, 3, 5, 1, 4], nr_rows=6)
    np.testing.assert_array_equal(sample.counts, np.array([0, 2, 0, 1, 3, 1]))
    with pytest.raises(ConstructionError):
        RowSample.from_drawn_rows([6], nr_rows=6)


def test_row_sample_accepts_tensor_and_series():
    from_tensor = RowSample.from_counts(torch.tensor([1, 0, 2]))
    from_series = RowSample.from_counts(pd.Series([1, 0, 2]))
    np.testing.assert_array_equal(from_tensor.counts, from_series.counts)


@pytest.mark.parametrize("counts", [[1, -1, 2], [0.5, 1.0], [[1, 2], [3, 4]]])
def test_row_sample_rejects_bad_counts(counts):
    with pytest.raises(ConstructionError):
        RowSample.from_counts(counts)


def test_sorted_columns_validation():
    cols = SortedColumns.from_sorted_positions([[3, 1, 0, 4, 2], [0, 1, 2, 3, 4]])
    assert cols.nr_rows == 5
    assert cols.nr_columns == 2
    with pytest.raises(ConstructionError):
        SortedColumns.from_sorted_positions([[0, 1, 2], [0, 1]])
    with pytest.raises(ConstructionError):
        SortedColumns.from_sorted_positions([[0, 1, 1]])
    with pytest.raises(ConstructionError):
        SortedColumns.from_sorted_positions([[0, 1, 2]], nr_rows=4)


def test_row_count_guard():
    assert check_row_count(10) == 10
    with pytest.raises(InternalOverflowError):
        check_row_count(2**31)


@pytest.mark.parametrize("positions", [
    np.array([2**32, 1], dtype=np.int64),
    np.array([1, 2**31], dtype=np.int64),
    np.array([0, -1], dtype=np.int64),
])
def test_sorted_columns_reject_positions_outside_int32(positions):
    with pytest.raises(ConstructionError):
        SortedColumns.from_sorted_positions([positions])
