"""Thread-safe maps of named callbacks that produce values on demand."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

_log = logging.getLogger(__name__)

_UNSET = object()


class CallbackEntry(Generic[T]):
    """A single registered callback that can be detached while in use."""

    def __init__(self, callback: Callable[[], T]) -> None:
        self._callback: Callable[[], T] | None = callback
        self._lock = threading.RLock()

    def clear(self) -> None:
        """Detach the callback; later reads fail."""
        with self._lock:
            self._callback = None

    def _fetch(self) -> object:
        with self._lock:
            if self._callback is None:
                return _UNSET
            return self._callback()

    def get_value(self) -> T:
        """Invoke the callback; raise LookupError if it has been cleared."""
        result = self._fetch()
        if result is _UNSET:
            raise LookupError("callback has been unregistered")
        return result  # type: ignore[return-value]


class CallbackValuesMap(Generic[T]):
    """A map from names to callbacks; values are computed when read.

    Callbacks are never invoked while the map's own lock is held, so a
    callback may safely touch the map (from any thread) while running.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[str, CallbackEntry[T]] = {}

    def get_values(self) -> dict[str, T]:
        """Invoke every callback and return the results ordered by name."""
        with self._lock:
            snapshot = sorted(self._entries.items())
        values: dict[str, T] = {}
        for name, entry in snapshot:
            result = entry._fetch()
            if result is not _UNSET:
                values[name] = result  # type: ignore[assignment]
        return values

    def get_value(self, name: str, default: T | None = None) -> T | None:
        """Invoke the callback registered under name, or return default."""
        with self._lock:
            entry = self._entries.get(name)
        if entry is None:
            return default
        result = entry._fetch()
        if result is _UNSET:
            return default
        return result  # type: ignore[return-value]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    def keys(self) -> list[str]:
        """Return the registered names in sorted order."""
        with self._lock:
            return sorted(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def register_callback(self, name: str, callback: Callable[[], T]) -> None:
        """Register callback under name, replacing any previous one."""
        with self._lock:
            self._entries[name] = CallbackEntry(callback)

    def unregister_callback(self, name: str) -> bool:
        """Remove the callback for name; return whether it was present."""
        with self._lock:
            entry = self._entries.pop(name, None)
            if entry is None:
                return False
            entry.clear()
        _log.debug("Unregistered callback: %s", name)
        return True

    def clear(self) -> None:
        """Unregister all callbacks."""
        with self._lock:
            for entry in self._entries.values():
                entry.clear()
            self._entries.clear()

    def get_callback(self, name: str) -> CallbackEntry[T] | None:
        """Return the entry registered under name, or None."""
        with self._lock:
            return self._entries.get(name)


class DynamicCounters(CallbackValuesMap[int]):
    """Integer-valued callbacks, with counter-named accessors."""

    def get_counters(self) -> dict[str, int]:
        """Return all counter values ordered by name."""
        return self.get_values()

    def get_counter(self, name: str, default: int | None = None) -> int | None:
        """Return the value of one counter, or default if it is absent."""
        return self.get_value(name, default)


class DynamicStrings(CallbackValuesMap[str]):
    """String-valued callbacks."""