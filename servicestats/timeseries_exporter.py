"""Export multi-level time series as named counters.

Each level of a time series becomes one counter named
``<stat>.<type>`` for the all-time level or ``<stat>.<type>.<seconds>``
for a windowed level.
"""

from __future__ import annotations

import functools
import time
from enum import IntEnum

from .callback_values import DynamicCounters
from .lock_traits import MutexWrapper
from .timeseries import MultiLevelTimeSeries


class ExportType(IntEnum):
    """The statistic a counter reports about a time series level."""

    SUM = 0
    COUNT = 1
    AVG = 2
    RATE = 3
    PERCENT = 4

    @property
    def suffix(self) -> str:
        """The name fragment used in exported counter names."""
        return _SUFFIXES[self]


_SUFFIXES = {
    ExportType.SUM: "sum",
    ExportType.COUNT: "count",
    ExportType.AVG: "avg",
    ExportType.RATE: "rate",
    ExportType.PERCENT: "pct",
}


class SynchronizedStat:
    """A time series guarded by a mutex; use it as a context manager."""

    def __init__(self, stat: MultiLevelTimeSeries) -> None:
        self._stat = stat
        self._mutex = MutexWrapper()

    def __enter__(self) -> MultiLevelTimeSeries:
        self._mutex.lock()
        return self._stat

    def __exit__(self, *args: object) -> None:
        self._mutex.unlock()

    def unsafe_get_unlocked(self) -> MultiLevelTimeSeries:
        """Return the series without locking.

        Only safe for reading what is fixed at construction, such as the
        number of levels and their durations.
        """
        return self._stat


def counter_name(
    stat: MultiLevelTimeSeries,
    stat_name: str,
    export_type: ExportType,
    level: int,
) -> str:
    """Return the counter name for one level and export type of a stat."""
    export_type = ExportType(export_type)
    series_level = stat.get_level(level)
    if series_level.is_all_time():
        return f"{stat_name}.{export_type.suffix}"
    return f"{stat_name}.{export_type.suffix}.{int(series_level.duration())}"


def stat_value(
    stat: MultiLevelTimeSeries,
    export_type: ExportType,
    level: int,
    now: int | None = None,
) -> int:
    """Bring the stat up to now and return one exported value as an integer.

    Averages and rates are truncated toward zero.
    """
    export_type = ExportType(export_type)
    # Without this update, stats would not decay when no values arrive.
    stat.update(int(time.time()) if now is None else now)
    if export_type is ExportType.SUM:
        return int(stat.sum(level))
    if export_type is ExportType.AVG:
        return int(stat.avg(level))
    if export_type is ExportType.RATE:
        return int(stat.rate(level))
    if export_type is ExportType.PERCENT:
        return int(100.0 * stat.avg(level))
    return int(stat.count(level))


def _locked_value(stat: SynchronizedStat, export_type: ExportType, level: int) -> int:
    with stat as series:
        return stat_value(series, export_type, level)


def export_stat(
    stat: SynchronizedStat,
    export_type: ExportType,
    stat_name: str,
    counters: DynamicCounters,
) -> None:
    """Register one counter callback per level of stat."""
    export_type = ExportType(export_type)
    series = stat.unsafe_get_unlocked()
    for level in range(series.num_levels()):
        counters.register_callback(
            counter_name(series, stat_name, export_type, level),
            functools.partial(_locked_value, stat, export_type, level),
        )


def unexport_stat(
    stat: SynchronizedStat,
    export_type: ExportType,
    stat_name: str,
    counters: DynamicCounters,
) -> None:
    """Unregister the counter callbacks that export_stat registered."""
    export_type = ExportType(export_type)
    with stat as series:
        names = [
            counter_name(series, stat_name, export_type, level)
            for level in range(series.num_levels())
        ]
    for name in names:
        counters.unregister_callback(name)