"""A registry of quantile stats exported as named integer counters.

A stat registered as ``MyStat`` with a p99 definition and a 60 second
sliding window is readable as ``MyStat.p99`` (all time) and
``MyStat.p99.60`` (the window).
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from .quantile_stat import Clock, Estimates, QuantileEstimates, QuantileStat, Snapshot
from .timeseries_exporter import ExportType

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class StatDef:
    """One exported statistic of a quantile stat."""

    export_type: ExportType = ExportType.SUM
    quantile: float = 0.0


@dataclass
class SnapshotEntry:
    """A named snapshot of a stat together with its definitions."""

    name: str
    snapshot: Snapshot
    stat_defs: list[StatDef] = field(default_factory=list)


@dataclass(frozen=True)
class _CounterEntry:
    stat: QuantileStat
    stat_def: StatDef
    sliding_window_length: float | None = None


@dataclass(frozen=True)
class _StatEntry:
    stat: QuantileStat
    stat_defs: tuple[StatDef, ...]


def stat_duration(
    sliding_window_length: float | None, creation_time: float, now: float
) -> int:
    """Return whole seconds since creation, capped at the window length."""
    diff = int(now - creation_time)
    if sliding_window_length is None or int(sliding_window_length) > diff:
        return diff
    return int(sliding_window_length)


def make_key(
    base: str, stat_def: StatDef, sliding_window_length: float | None = None
) -> str:
    """Return the counter name for one definition and optional window."""
    tail = "" if sliding_window_length is None else f".{int(sliding_window_length)}"
    export_type = ExportType(stat_def.export_type)
    if export_type is ExportType.PERCENT:
        return f"{base}.p{stat_def.quantile * 100.0:g}{tail}"
    return f"{base}.{export_type.name.lower()}{tail}"


def _clamp_to_int64(value: float) -> int:
    if math.isnan(value):
        return 0
    if value >= _INT64_MAX:
        return _INT64_MAX
    if value <= _INT64_MIN:
        return _INT64_MIN
    return int(value)


def _extract_raw(
    stat_def: StatDef,
    estimate: QuantileEstimates,
    duration: int,
    use_count_for_rate: bool,
) -> float:
    export_type = ExportType(stat_def.export_type)
    if export_type is ExportType.PERCENT:
        for quantile, value in estimate.quantiles:
            if quantile == stat_def.quantile:
                return value
        raise KeyError(f"requested missing quantile: {stat_def.quantile}")
    if export_type is ExportType.SUM:
        return estimate.sum
    if export_type is ExportType.COUNT:
        return estimate.count
    if export_type is ExportType.AVG:
        if estimate.count > 0:
            return estimate.sum / estimate.count
        return 0.0
    if duration > 0:
        numerator = estimate.count if use_count_for_rate else estimate.sum
        return numerator / duration
    return estimate.count


def extract_value(
    stat_def: StatDef,
    estimate: QuantileEstimates,
    duration: int,
    use_count_for_rate: bool = False,
) -> int:
    """Return the value stat_def selects from estimate, clamped to int64.

    Rates divide by duration seconds; with ``use_count_for_rate`` the
    sample count is divided instead of the sum. Raises KeyError when a
    percentile was not estimated.
    """
    return _clamp_to_int64(
        _extract_raw(stat_def, estimate, duration, use_count_for_rate)
    )


class QuantileStatMap:
    """Quantile stats by name, read as integer counters by full key."""

    def __init__(
        self, clock: Clock = time.monotonic, use_count_for_rate: bool = False
    ) -> None:
        self._clock: Callable[[], float] = clock
        self._use_count_for_rate = use_count_for_rate
        self._lock = threading.RLock()
        self._counters: dict[str, _CounterEntry] = {}
        self._stats: dict[str, _StatEntry] = {}

    def _extract(self, stat_def: StatDef, estimate: QuantileEstimates, duration: int) -> int:
        return extract_value(stat_def, estimate, duration, self._use_count_for_rate)

    def get_value(self, key: str) -> int | None:
        """Return the counter for a full key, or None if it is unknown."""
        with self._lock:
            entry = self._counters.get(key)
        if entry is None:
            return None
        quantiles: list[float] = []
        if entry.stat_def.export_type == ExportType.PERCENT:
            quantiles.append(entry.stat_def.quantile)
        estimates = entry.stat.get_estimates(quantiles)

        estimate: QuantileEstimates | None = None
        if entry.sliding_window_length is not None:
            for window in estimates.sliding_windows:
                if window.sliding_window_length() == entry.sliding_window_length:
                    estimate = window.estimate
                    break
        else:
            estimate = estimates.all_time_estimate
        if estimate is None:
            return None
        duration = stat_duration(
            entry.sliding_window_length, entry.stat.creation_time(), self._clock()
        )
        return self._extract(entry.stat_def, estimate, duration)

    def _add_values(
        self,
        name: str,
        stat_def: StatDef,
        estimates: Estimates,
        time_since_creation: int,
        out: dict[str, int],
    ) -> None:
        out.setdefault(
            make_key(name, stat_def),
            self._extract(stat_def, estimates.all_time_estimate, time_since_creation),
        )
        for window in estimates.sliding_windows:
            length = window.sliding_window_length()
            duration = min(int(length), time_since_creation)
            out.setdefault(
                make_key(name, stat_def, length),
                self._extract(stat_def, window.estimate, duration),
            )

    def get_values(self) -> dict[str, int]:
        """Return every counter, ordered by key."""
        now = self._clock()
        out: dict[str, int] = {}
        with self._lock:
            for name, entry in self._stats.items():
                quantiles = [
                    d.quantile for d in entry.stat_defs
                    if d.export_type == ExportType.PERCENT
                ]
                estimates = entry.stat.get_estimates(quantiles, now)
                since = int(now - entry.stat.creation_time())
                for stat_def in entry.stat_defs:
                    self._add_values(name, stat_def, estimates, since, out)
        return dict(sorted(out.items()))

    def get_selected_values(self, keys: Iterable[str]) -> dict[str, int]:
        """Return the counters for the given keys that exist, ordered by key."""
        grouped: dict[int, tuple[QuantileStat, list[tuple[str, _CounterEntry]]]] = {}
        with self._lock:
            for key in keys:
                entry = self._counters.get(key)
                if entry is not None:
                    grouped.setdefault(id(entry.stat), (entry.stat, []))[1].append(
                        (key, entry)
                    )
        now = self._clock()
        out: dict[str, int] = {}
        for stat, members in grouped.values():
            quantiles = [
                entry.stat_def.quantile for _, entry in members
                if entry.stat_def.export_type == ExportType.PERCENT
            ]
            estimates = stat.get_estimates(quantiles, now)
            since = int(now - stat.creation_time())
            for key, entry in members:
                if entry.sliding_window_length is None:
                    out[key] = self._extract(
                        entry.stat_def, estimates.all_time_estimate, since
                    )
                    continue
                for window in estimates.sliding_windows:
                    length = window.sliding_window_length()
                    if length == entry.sliding_window_length:
                        out[key] = self._extract(
                            entry.stat_def, window.estimate, min(int(length), since)
                        )
                        break
        return dict(sorted(out.items()))

    def get(self, name: str) -> QuantileStat | None:
        """Return the stat registered under a base name, or None."""
        with self._lock:
            entry = self._stats.get(name)
        return None if entry is None else entry.stat

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._counters

    def keys(self) -> list[str]:
        """Return every full counter key, sorted."""
        with self._lock:
            return sorted(self._counters)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def get_snapshot_entry(
        self, name: str, now: float | None = None
    ) -> SnapshotEntry | None:
        """Return a snapshot of the stat registered under name, or None."""
        if now is None:
            now = self._clock()
        with self._lock:
            entry = self._stats.get(name)
            if entry is None:
                return None
            return SnapshotEntry(
                name=name,
                snapshot=entry.stat.get_snapshot(now),
                stat_defs=list(entry.stat_defs),
            )

    def register_quantile_stat(
        self, name: str, stat: QuantileStat, stat_defs: Sequence[StatDef]
    ) -> QuantileStat:
        """Register stat under name and return it.

        If a stat is already registered under name, it is returned instead
        and nothing changes.
        """
        with self._lock:
            existing = self._stats.get(name)
            if existing is not None:
                return existing.stat
            lengths = stat.get_sliding_window_lengths()
            for stat_def in stat_defs:
                self._counters.setdefault(
                    make_key(name, stat_def), _CounterEntry(stat, stat_def)
                )
                for length in lengths:
                    self._counters.setdefault(
                        make_key(name, stat_def, length),
                        _CounterEntry(stat, stat_def, length),
                    )
            self._stats[name] = _StatEntry(stat, tuple(stat_defs))
            return stat

    def flush_all(self) -> None:
        """Fold buffered values of every stat into its digests."""
        with self._lock:
            stats = {id(e.stat): e.stat for e in self._counters.values()}
            for stat in stats.values():
                stat.flush()

    def forget_all(self) -> None:
        """Remove every registered stat."""
        with self._lock:
            self._counters.clear()
            self._stats.clear()