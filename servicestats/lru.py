"""A small least-recently-used map with hit and miss statistics."""

from __future__ import annotations

from collections import OrderedDict
from typing import Callable, Generic, Hashable, Iterator, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

EvictCallback = Callable[[object, object], None]


class NoCapacityError(Exception):
    """Raised when an entry cannot be stored because the capacity is zero."""


class SimpleLRUMap(Generic[K, V]):
    """A bounded map that evicts its least recently used entries.

    Iteration runs from the most recently used entry to the least.
    Lookups through ``find``, ``peek``, ``touch``, ``[]`` and the
    ``get_or_create`` family count towards the hit and miss statistics.
    Evict callbacks receive the evicted key and value.
    """

    def __init__(self, capacity: int = 0) -> None:
        self._capacity = capacity
        # The first item is the most recently used one.
        self._entries: OrderedDict[K, V] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def _evict(self, evict_callback: EvictCallback | None) -> None:
        key, value = self._entries.popitem(last=True)
        if evict_callback is not None:
            evict_callback(key, value)

    def _ensure_room(self, evict_callback: EvictCallback | None) -> bool:
        if self._capacity < 1:
            return False
        while len(self._entries) >= self._capacity:
            self._evict(evict_callback)
        return True

    def _try_add(
        self, key: K, value: V, evict_callback: EvictCallback | None
    ) -> bool:
        if not self._ensure_room(evict_callback):
            return False
        self._entries[key] = value
        self._entries.move_to_end(key, last=False)
        return True

    def find(self, key: K, move_to_front: bool = False) -> tuple[K, V] | None:
        """Return the (key, value) pair for key, or None if absent."""
        if key not in self._entries:
            self._misses += 1
            return None
        if move_to_front:
            self._entries.move_to_end(key, last=False)
        self._hits += 1
        return key, self._entries[key]

    def peek(self, key: K) -> V:
        """Return the value without changing recency; raise KeyError if absent."""
        found = self.find(key, False)
        if found is None:
            raise KeyError(key)
        return found[1]

    def touch(self, key: K) -> V:
        """Return the value and mark it most recent; raise KeyError if absent."""
        found = self.find(key, True)
        if found is None:
            raise KeyError(key)
        return found[1]

    def __getitem__(self, key: K) -> V:
        return self.peek(key)

    def try_get_or_create(
        self,
        key: K,
        factory: Callable[[K], V],
        move_to_front: bool = True,
        evict_callback: EvictCallback | None = None,
    ) -> V | None:
        """Return the value for key, creating it with factory(key) if absent.

        Returns None when a new entry is needed but there is no capacity.
        """
        found = self.find(key, move_to_front)
        if found is not None:
            return found[1]
        value = factory(key)
        if not self._try_add(key, value, evict_callback):
            return None
        return value

    def get_or_create(
        self,
        key: K,
        factory: Callable[[K], V],
        move_to_front: bool = True,
        evict_callback: EvictCallback | None = None,
    ) -> V:
        """Like try_get_or_create, but raise NoCapacityError instead of None."""
        found = self.find(key, move_to_front)
        if found is not None:
            return found[1]
        value = factory(key)
        if not self._try_add(key, value, evict_callback):
            raise NoCapacityError("no capacity")
        return value

    def try_set(
        self,
        key: K,
        value: V,
        move_to_front: bool = True,
        evict_callback: EvictCallback | None = None,
    ) -> int:
        """Store value under key.

        Returns 1 if a new entry was created, -1 if an existing entry was
        replaced and 0 if there was no capacity. ``move_to_front`` applies
        only to existing keys.
        """
        if key not in self._entries:
            return 1 if self._try_add(key, value, evict_callback) else 0
        if move_to_front:
            self._entries.move_to_end(key, last=False)
        self._entries[key] = value
        return -1

    def set(
        self,
        key: K,
        value: V,
        move_to_front: bool = True,
        evict_callback: EvictCallback | None = None,
    ) -> bool:
        """Store value under key; return whether a new entry was created."""
        outcome = self.try_set(key, value, move_to_front, evict_callback)
        if outcome == 0:
            raise NoCapacityError("no capacity")
        return outcome == 1

    def erase(self, key: K) -> bool:
        """Remove key; return whether it was present."""
        if key not in self._entries:
            return False
        del self._entries[key]
        return True

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._entries))

    def items(self) -> Iterator[tuple[K, V]]:
        """Yield (key, value) pairs from most to least recently used."""
        yield from list(self._entries.items())

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self, clear_stats: bool = True) -> None:
        """Remove every entry, and reset the statistics unless told not to."""
        self._entries.clear()
        if clear_stats:
            self.clear_stats()

    def capacity(self) -> int:
        """Return the maximum number of entries."""
        return self._capacity

    def set_capacity(
        self, new_capacity: int, evict_callback: EvictCallback | None = None
    ) -> int:
        """Change the capacity, evicting as needed; return the old capacity."""
        old_capacity = self._capacity
        while len(self._entries) > new_capacity:
            self._evict(evict_callback)
        self._capacity = new_capacity
        return old_capacity

    def hits(self) -> int:
        """Return the number of successful lookups."""
        return self._hits

    def misses(self) -> int:
        """Return the number of failed lookups."""
        return self._misses

    def hit_ratio(self) -> float:
        """Return hits / (hits + misses), or 0 if nothing was looked up."""
        total = self._hits + self._misses
        if total == 0:
            return 0.0
        return self._hits / total

    def clear_stats(self) -> None:
        """Reset the hit and miss counters."""
        self._hits = 0
        self._misses = 0