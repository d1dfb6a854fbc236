"""Order-preserving table shared by dives and trips.

One generic container parameterised by a three-way comparator replaces the
per-type tables: the dive table and the trip table differ only in the
comparator they are built with.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
import functools
from typing import Generic, TypeVar, overload

T = TypeVar("T")


class OrderedTable(Generic[T]):
    """A list kept in the order defined by `compare`.

    `compare(a, b)` returns a negative number, zero or a positive number like
    a classic cmp function. Membership and index lookups are by identity.
    """

    def __init__(self, compare: Callable[[T, T], int], items: Iterable[T] = ()) -> None:
        self._compare = compare
        self._items: list[T] = list(items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    @overload
    def __getitem__(self, idx: int) -> T: ...

    @overload
    def __getitem__(self, idx: slice) -> list[T]: ...

    def __getitem__(self, idx: int | slice) -> T | list[T]:
        return self._items[idx]

    def __repr__(self) -> str:
        return f"OrderedTable({self._items!r})"

    def less_than(self, a: T, b: T) -> bool:
        """True if `a` sorts strictly before `b`."""
        return self._compare(a, b) < 0

    def insertion_index(self, item: T) -> int:
        """Index of the first element `item` sorts before, or the table length."""
        # Keys may have been edited since insertion, so no bisection
        for i, existing in enumerate(self._items):
            if self.less_than(item, existing):
                return i
        return len(self._items)

    def insert_at(self, idx: int, item: T) -> None:
        self._items.insert(idx, item)

    def insert(self, item: T) -> int:
        """Insert `item` at its sorted position and return that position."""
        idx = self.insertion_index(item)
        self._items.insert(idx, item)
        return idx

    def append(self, item: T) -> None:
        """Add `item` at the end without ordering; call `sort()` afterwards."""
        self._items.append(item)

    def remove_at(self, idx: int) -> T:
        return self._items.pop(idx)

    def index_of(self, item: T) -> int:
        """Index of `item` compared by identity, -1 if absent."""
        for i, existing in enumerate(self._items):
            if existing is item:
                return i
        return -1

    def remove(self, item: T) -> bool:
        """Remove `item` if present. Returns True if something was removed."""
        idx = self.index_of(item)
        if idx < 0:
            return False
        del self._items[idx]
        return True

    def sort(self) -> None:
        self._items.sort(key=functools.cmp_to_key(self._compare))

    def clear(self) -> None:
        self._items.clear()
