"""Lock policies for thread-local statistics containers."""

from __future__ import annotations

import threading
from typing import Union


class UniqueNoLock:
    """A lock that never blocks; it only records whether it is held."""

    def __init__(self) -> None:
        self._held = False

    @property
    def held(self) -> bool:
        """Whether lock() has been called without a matching unlock()."""
        return self._held

    def lock(self) -> None:
        """Mark the lock as held without blocking."""
        self._held = True

    def unlock(self) -> None:
        """Mark the lock as released."""
        self._held = False

    def __enter__(self) -> UniqueNoLock:
        self.lock()
        return self

    def __exit__(self, *args: object) -> None:
        self.unlock()


class WrongThreadError(RuntimeError):
    """Raised when a single-thread object is used from another thread."""


class DebugCheckedLock:
    """A non-blocking lock that checks it is always taken from one thread.

    The owning thread is the first one that takes the lock, not the one
    that created it, so an object may be set up in one thread and then
    handed to the thread that uses it.
    """

    def __init__(self) -> None:
        self._thread_id: int | None = None
        self._held = False

    @property
    def held(self) -> bool:
        """Whether lock() has been called without a matching unlock()."""
        return self._held

    def lock(self) -> None:
        """Check the calling thread; raise WrongThreadError on a mismatch."""
        self.assert_on_correct_thread()
        self._held = True

    def unlock(self) -> None:
        """Mark the lock as released."""
        self._held = False

    def __enter__(self) -> DebugCheckedLock:
        self.lock()
        return self

    def __exit__(self, *args: object) -> None:
        self.unlock()

    def assert_on_correct_thread(self) -> None:
        """Record the calling thread on first use, then insist on it."""
        current = threading.get_ident()
        if self._thread_id is None:
            self._thread_id = current
            return
        if self._thread_id != current:
            raise WrongThreadError(
                f"used from thread {current}, owned by thread {self._thread_id}"
            )

    def swap_threads(self) -> None:
        """Forget the owning thread so the next user becomes the owner."""
        self._thread_id = None


class MutexWrapper:
    """A plain exclusive mutex with lock/unlock and context manager use."""

    def __init__(self) -> None:
        self._mutex = threading.Lock()

    def lock(self) -> None:
        """Acquire the mutex, blocking until it is free."""
        self._mutex.acquire()

    def unlock(self) -> None:
        """Release the mutex; raise RuntimeError if it is not held."""
        self._mutex.release()

    def __enter__(self) -> MutexWrapper:
        self.lock()
        return self

    def __exit__(self, *args: object) -> None:
        self.unlock()


class PlainCounter:
    """An unsynchronized integer counter."""

    def __init__(self, value: int = 0) -> None:
        self._value = value

    def increment(self, amount: int) -> None:
        """Add amount to the counter."""
        self._value += amount

    def reset(self) -> int:
        """Set the counter to zero and return its previous value."""
        previous, self._value = self._value, 0
        return previous


class AtomicCounter:
    """An integer counter safe to update from several threads."""

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def increment(self, amount: int) -> None:
        """Add amount to the counter."""
        with self._lock:
            self._value += amount

    def reset(self) -> int:
        """Set the counter to zero and return its previous value."""
        with self._lock:
            previous, self._value = self._value, 0
        return previous


RegistryLock = Union[DebugCheckedLock, UniqueNoLock]


def _check_owner(lock: object) -> None:
    """Check the calling thread if the lock is tied to one thread."""
    if isinstance(lock, DebugCheckedLock):
        lock.assert_on_correct_thread()


def _forget_owner(lock: object) -> None:
    """Release a thread-tied lock's owner so another thread may take it."""
    if isinstance(lock, DebugCheckedLock):
        lock.swap_threads()


class TLStatsNoLocking:
    """Policy that performs no locking, for single-thread use.

    In debug mode the registry lock checks that it is only ever used
    from one thread.
    """

    def __init__(self, debug: bool = __debug__) -> None:
        self.debug = debug

    def make_registry_lock(self) -> RegistryLock:
        """Return the lock guarding a container's registry."""
        return DebugCheckedLock() if self.debug else UniqueNoLock()

    def make_stat_lock(self) -> UniqueNoLock:
        """Return the lock guarding one stat's data."""
        return UniqueNoLock()

    def make_counter(self, value: int = 0) -> PlainCounter:
        """Return an integer counter suited to this policy."""
        return PlainCounter(value)

    def will_acquire_stat_lock(self, registry_lock: object) -> None:
        """Check the calling thread before a stat lock is taken."""
        _check_owner(registry_lock)

    def swap_threads(self, lock: object) -> None:
        """Allow the next access to come from a different thread."""
        _forget_owner(lock)


class TLStatsThreadSafe:
    """Policy that synchronizes all access to stat data."""

    def make_registry_lock(self) -> threading.Lock:
        """Return the lock guarding a container's registry."""
        return threading.Lock()

    def make_stat_lock(self) -> threading.Lock:
        """Return the lock guarding one stat's data."""
        return threading.Lock()

    def make_counter(self, value: int = 0) -> AtomicCounter:
        """Return an integer counter suited to this policy."""
        return AtomicCounter(value)

    def will_acquire_stat_lock(self, registry_lock: object) -> None:
        """Check the calling thread only if the lock is tied to one."""
        _check_owner(registry_lock)

    def swap_threads(self, lock: object) -> None:
        """Release a thread-tied lock's owner; real locks need nothing."""
        _forget_owner(lock)