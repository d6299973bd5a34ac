import numpy as np
import pytest

from treememberships.core.index_manager import RowIndexManager
from treememberships.errors import IndexOutOfRangeError


def make_manager() -> RowIndexManager:
    values = np.array([[5.0, 0.3], [2.0, 0.1], [9.0, 0.5], [1.0, 0.2], [7.0, 0.4]])
    orders = [np.argsort(values[:, j], kind="stable") for j in range(values.shape[1])]
    return RowIndexManager.from_sorted_positions(orders)


def test_positions_are_inverse_bijections():
    manager = make_manager()
    assert manager.nr_rows == 5
    assert manager.nr_columns == 2
    np.testing.assert_array_equal(manager.original_positions(0), np.array([3, 1, 0, 4, 2]))
    np.testing.assert_array_equal(manager.positions_in_column(0), np.array([2, 1, 4, 0, 3]))
    for col in range(manager.nr_columns):
        originals = manager.original_positions(col)
        positions = manager.positions_in_column(col)
        np.testing.assert_array_equal(positions[originals], np.arange(5))
        np.testing.assert_array_equal(originals[positions], np.arange(5))


def test_scalar_lookups():
    manager = make_manager()
    assert manager.position_in_column(0, 3) == 0
    assert manager.original_position(0, 4) == 2
    assert manager.position_in_column(1, 1) == 0
    assert manager.original_position(1, 4) == 2


def test_arrays_are_read_only():
    manager = make_manager()
    with pytest.raises(ValueError):
        manager.original_positions(0)[0] = 1


@pytest.mark.parametrize("call", [
    lambda m: m.positions_in_column(2),
    lambda m: m.original_positions(-1),
    lambda m: m.position_in_column(0, 5),
    lambda m: m.original_position(0, -1),
])
def test_out_of_range_lookups(call):
    with pytest.raises(IndexOutOfRangeError):
        call(make_manager())
