"""Cursors enumerating a node's rows in a column's sorted order."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ..errors import InvalidCursorStateError
from .cache import ColumnIndexEntry


class ColumnMemberships(ABC):
    """Resettable cursor over a row subset, ascending by column position.

    The cursor is either before its first member (``position is None``) or
    positioned on member ``position`` in ``[0, size())``. ``next`` and
    ``next_index_from`` never move past the last member: when they fail the
    cursor stays on (or moves to) the last member.
    """

    def __init__(self, entry: ColumnIndexEntry) -> None:
        self._entry = entry
        self._position: Optional[int] = None

    @property
    def column(self) -> int:
        return self._entry.column

    @property
    def position(self) -> Optional[int]:
        """Current member position, ``None`` while before the start."""
        return self._position

    @abstractmethod
    def size(self) -> int:
        """Number of members, independent of the cursor position."""

    @abstractmethod
    def index_in_data_memberships(self) -> int:
        """Node-local index of the current row in the owning node view."""

    @abstractmethod
    def _restricted_at(self, position: int) -> int:
        """Restricted (root-level) column position of member ``position``."""

    @abstractmethod
    def _first_member_from(self, restricted: int) -> int:
        """First member whose restricted position is ``>= restricted``."""

    def __len__(self) -> int:
        return self.size()

    def next(self) -> bool:
        candidate = 0 if self._position is None else self._position + 1
        if candidate >= self.size():
            return False
        self._position = candidate
        return True

    def previous(self) -> bool:
        if self._position is None:
            return False
        if self._position == 0:
            self._position = None
            return False
        self._position -= 1
        return True

    def next_index_from(self, column_position: int) -> bool:
        """Advance to the first member at or after ``column_position``.

        Scans forward from the current position, so a full search needs a
        :meth:`reset` first.
        """
        size = self.size()
        start = 0 if self._position is None else self._position + 1
        if start >= size:
            return False
        restricted = int(
            np.searchsorted(self._entry.column_positions, int(column_position), side="left")
        )
        candidate = max(start, self._first_member_from(restricted))
        if candidate < size:
            self._position = candidate
            return True
        self._position = size - 1
        return False

    def go_to_last(self) -> bool:
        size = self.size()
        if size == 0:
            return False
        self._position = size - 1
        return True

    def reset(self) -> None:
        self._position = None

    def row_weight(self) -> int:
        return int(self._entry.weights[self._current()])

    def original_index(self) -> int:
        return int(self._entry.original_indices[self._current()])

    def index_in_column(self) -> int:
        return int(self._entry.column_positions[self._current()])

    def root_local_index(self) -> int:
        return int(self._entry.root_local_indices[self._current()])

    def _current(self) -> int:
        if self._position is None:
            raise InvalidCursorStateError(
                "cursor is before its first member; call next(), next_index_from() or go_to_last()"
            )
        return self._restricted_at(self._position)


class RootColumnMemberships(ColumnMemberships):
    """Cursor over every root row, reading the cached dense arrays directly."""

    def size(self) -> int:
        return self._entry.size

    def index_in_data_memberships(self) -> int:
        return self.root_local_index()

    def _restricted_at(self, position: int) -> int:
        return position

    def _first_member_from(self, restricted: int) -> int:
        return restricted


class DescendantColumnMemberships(ColumnMemberships):
    """Cursor over a descendant's rows, filtering the root arrays by a mask.

    ``members`` lists the set positions of the descendant's mask over
    restricted column positions, ascending. Only those positions are
    walked; the root's sorted arrays are shared, not copied.
    """

    def __init__(
        self,
        entry: ColumnIndexEntry,
        members: np.ndarray,
        node_local_of_root: np.ndarray,
    ) -> None:
        super().__init__(entry)
        self._members = members
        self._node_local_of_root = node_local_of_root

    @classmethod
    def from_mask(
        cls,
        entry: ColumnIndexEntry,
        restricted_mask: np.ndarray,
        node_local_of_root: np.ndarray,
    ) -> "DescendantColumnMemberships":
        members = np.flatnonzero(restricted_mask).astype(np.int32, copy=False)
        members.flags.writeable = False
        return cls(entry, members, node_local_of_root)

    @property
    def members(self) -> np.ndarray:
        return self._members

    def size(self) -> int:
        return int(self._members.size)

    def index_in_data_memberships(self) -> int:
        root_local = self._entry.root_local_indices[self._current()]
        return int(self._node_local_of_root[root_local])

    def _restricted_at(self, position: int) -> int:
        return int(self._members[position])

    def _first_member_from(self, restricted: int) -> int:
        return int(np.searchsorted(self._members, restricted, side="left"))
