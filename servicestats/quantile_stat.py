"""Quantile statistics over all time and over sliding windows.

Times are floating-point seconds from the stat's clock (monotonic by
default). Added values are buffered and folded into the digests when the
stat is flushed or read.
"""

from __future__ import annotations

import itertools
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence, Union

Clock = Callable[[], float]


@dataclass(frozen=True)
class QuantileEstimates:
    """Sum, count and requested (quantile, value) pairs."""

    sum: float = 0.0
    count: float = 0.0
    quantiles: tuple[tuple[float, float], ...] = ()


@dataclass(frozen=True)
class QuantileDigest:
    """The sorted values seen over some period."""

    values: tuple[float, ...] = ()

    @classmethod
    def from_values(cls, values: Iterable[float]) -> QuantileDigest:
        """Build a digest from unsorted values."""
        return cls(tuple(sorted(float(v) for v in values)))

    @classmethod
    def merge(cls, digests: Iterable[QuantileDigest]) -> QuantileDigest:
        """Combine several digests into one."""
        return cls.from_values(itertools.chain.from_iterable(d.values for d in digests))

    @property
    def sum(self) -> float:
        return math.fsum(self.values)

    @property
    def count(self) -> int:
        return len(self.values)

    def estimate_quantile(self, quantile: float) -> float:
        """Return the value at quantile, interpolating between neighbours.

        An empty digest gives 0.0.
        """
        if not 0.0 <= quantile <= 1.0:
            raise ValueError(f"quantile {quantile} outside [0, 1]")
        if not self.values:
            return 0.0
        position = quantile * (len(self.values) - 1)
        low = math.floor(position)
        high = min(low + 1, len(self.values) - 1)
        fraction = position - low
        return self.values[low] + (self.values[high] - self.values[low]) * fraction

    def estimates(self, quantiles: Sequence[float] = ()) -> QuantileEstimates:
        """Return the sum, count and the requested quantiles."""
        return QuantileEstimates(
            sum=self.sum,
            count=float(self.count),
            quantiles=tuple((q, self.estimate_quantile(q)) for q in quantiles),
        )


class SimpleQuantileEstimator:
    """Estimates quantiles over every value ever added."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buffer: list[float] = []
        self._digest = QuantileDigest()

    def add_value(self, value: float, now: float | None = None) -> None:
        """Buffer a value; the time is not needed for all-time data."""
        with self._lock:
            self._buffer.append(float(value))

    def _flush_locked(self) -> None:
        if self._buffer:
            self._digest = QuantileDigest.merge(
                [self._digest, QuantileDigest.from_values(self._buffer)]
            )
            self._buffer.clear()

    def flush(self) -> None:
        """Fold buffered values into the digest."""
        with self._lock:
            self._flush_locked()

    def get_digest(self, now: float | None = None) -> QuantileDigest:
        """Return the digest of all values added so far."""
        with self._lock:
            self._flush_locked()
            return self._digest

    def estimate_quantiles(
        self, quantiles: Sequence[float] = (), now: float | None = None
    ) -> QuantileEstimates:
        """Return estimates over all values added so far."""
        return self.get_digest(now).estimates(quantiles)


class SlidingWindowQuantileEstimator:
    """Estimates quantiles over the latest n_windows windows of time."""

    def __init__(self, window_length: float, n_windows: int) -> None:
        if window_length <= 0:
            raise ValueError("window_length must be positive")
        if n_windows < 1:
            raise ValueError("n_windows must be at least 1")
        self.window_length = window_length
        self.n_windows = n_windows
        self._lock = threading.Lock()
        self._buffer: list[tuple[float, float]] = []
        self._windows: dict[int, list[float]] = {}
        self._latest: int | None = None

    def _index(self, now: float) -> int:
        return math.floor(now / self.window_length)

    def _advance(self, index: int) -> None:
        if self._latest is not None and index <= self._latest:
            return
        self._latest = index
        cutoff = index - self.n_windows
        for old in [i for i in self._windows if i <= cutoff]:
            del self._windows[old]

    def _insert(self, value: float, now: float) -> None:
        index = self._index(now)
        self._advance(index)
        assert self._latest is not None
        if index <= self._latest - self.n_windows:
            return
        self._windows.setdefault(index, []).append(value)

    def _flush_locked(self) -> None:
        for value, now in sorted(self._buffer, key=lambda item: item[1]):
            self._insert(value, now)
        self._buffer.clear()

    def add_value(self, value: float, now: float) -> None:
        """Buffer a value observed at time now."""
        with self._lock:
            self._buffer.append((float(value), now))

    def flush(self) -> None:
        """Fold buffered values into their windows."""
        with self._lock:
            self._flush_locked()

    def get_digest(self, now: float) -> QuantileDigest:
        """Return the digest of the values still inside the window at now."""
        with self._lock:
            self._flush_locked()
            self._advance(self._index(now))
            return QuantileDigest.from_values(
                itertools.chain.from_iterable(self._windows.values())
            )

    def estimate_quantiles(
        self, quantiles: Sequence[float], now: float
    ) -> QuantileEstimates:
        """Return estimates over the values inside the window at now."""
        return self.get_digest(now).estimates(quantiles)


class SlidingWindow:
    """A sliding window definition together with its estimator."""

    def __init__(self, window_length: float, n_windows: int) -> None:
        self.window_length = window_length
        self.n_windows = n_windows
        self.estimator = SlidingWindowQuantileEstimator(window_length, n_windows)

    def sliding_window_length(self) -> float:
        """Return the total time covered by the window."""
        return self.window_length * self.n_windows


@dataclass
class SlidingWindowEstimate:
    """Estimates for one sliding window."""

    window_length: float
    n_windows: int
    estimate: QuantileEstimates

    def sliding_window_length(self) -> float:
        """Return the total time covered by the window."""
        return self.window_length * self.n_windows


@dataclass
class Estimates:
    """All-time estimates and one estimate per sliding window."""

    all_time_estimate: QuantileEstimates
    sliding_windows: list[SlidingWindowEstimate] = field(default_factory=list)


@dataclass
class SlidingWindowSnapshot:
    """The digest of one sliding window at a moment in time."""

    window_length: float
    n_windows: int
    digest: QuantileDigest


@dataclass
class Snapshot:
    """Digests of a stat at a moment in time."""

    now: float
    creation_time: float
    all_time_digest: QuantileDigest
    sliding_window_snapshot: list[SlidingWindowSnapshot] = field(default_factory=list)


WindowDef = Union[SlidingWindow, tuple[float, int]]


class QuantileStat:
    """Quantile estimates over all time and over several sliding windows."""

    def __init__(
        self,
        sliding_windows: Iterable[WindowDef] = (),
        clock: Clock = time.monotonic,
    ) -> None:
        self._clock = clock
        self._windows = [
            w if isinstance(w, SlidingWindow) else SlidingWindow(*w)
            for w in sliding_windows
        ]
        self._all_time = SimpleQuantileEstimator()
        self._creation_time = clock()

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    def add_value(self, value: float, now: float | None = None) -> None:
        """Add a value to the all-time estimator and every window."""
        now = self._now(now)
        self._all_time.add_value(value, now)
        for window in self._windows:
            window.estimator.add_value(value, now)

    def flush(self) -> None:
        """Fold all buffered values into the digests."""
        self._all_time.flush()
        for window in self._windows:
            window.estimator.flush()

    def get_estimates(
        self, quantiles: Sequence[float] = (), now: float | None = None
    ) -> Estimates:
        """Return estimates for the requested quantiles."""
        now = self._now(now)
        return Estimates(
            all_time_estimate=self._all_time.estimate_quantiles(quantiles, now),
            sliding_windows=[
                SlidingWindowEstimate(
                    window.window_length,
                    window.n_windows,
                    window.estimator.estimate_quantiles(quantiles, now),
                )
                for window in self._windows
            ],
        )

    def get_sliding_window_lengths(self) -> list[float]:
        """Return the total length of each sliding window."""
        return [window.sliding_window_length() for window in self._windows]

    def creation_time(self) -> float:
        """Return the clock reading when the stat was created."""
        return self._creation_time

    def get_snapshot(self, now: float | None = None) -> Snapshot:
        """Return the digests as of now."""
        now = self._now(now)
        return Snapshot(
            now=now,
            creation_time=self._creation_time,
            all_time_digest=self._all_time.get_digest(now),
            sliding_window_snapshot=[
                SlidingWindowSnapshot(
                    window.window_length,
                    window.n_windows,
                    window.estimator.get_digest(now),
                )
                for window in self._windows
            ],
        )