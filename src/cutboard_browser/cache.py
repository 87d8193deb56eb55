"""Fixed-capacity key/value cache with insertion-order eviction."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class BoundedCache(Generic[K, V]):
    """Key/value cache holding at most ``capacity`` items.

    Eviction order is insertion order: when a new key is inserted into a
    full cache, the oldest-inserted key is dropped. Lookups never promote a
    key, and overwriting an existing key keeps its original position.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items: dict[K, V] = {}

    def get(self, key: K) -> V | None:
        return self._items.get(key)

    def has(self, key: K) -> bool:
        return key in self._items

    def put(self, key: K, value: V) -> None:
        if key not in self._items and len(self._items) >= self.capacity:
            oldest = next(iter(self._items))
            del self._items[oldest]
        self._items[key] = value

    def clear(self) -> None:
        self._items.clear()

    def items(self) -> list[tuple[K, V]]:
        """Return items oldest-first."""
        return list(self._items.items())

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._items))


__all__ = ["BoundedCache"]
