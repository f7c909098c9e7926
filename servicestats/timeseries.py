"""Bucketed time series and multi-level time series with common presets.

Times are integer seconds since the epoch. Time is expected to move
forward: values older than what a level can still track are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence


@dataclass
class _Bucket:
    sum: int = 0
    count: int = 0

    def add(self, total: int, nsamples: int) -> None:
        self.sum += total
        self.count += nsamples

    def subtract(self, other: _Bucket) -> None:
        self.sum -= other.sum
        self.count -= other.count

    def clear(self) -> None:
        self.sum = 0
        self.count = 0


class BucketedTimeSeries:
    """Sums and counts over a sliding window split into buckets.

    A duration of 0 tracks all data ever added.
    """

    def __init__(self, num_buckets: int, duration: int) -> None:
        if duration < 0:
            raise ValueError("duration must not be negative")
        self._duration = duration
        self._total = _Bucket()
        self._buckets: list[_Bucket] = []
        if duration != 0:
            if num_buckets < 1:
                raise ValueError("at least one bucket is required")
            # More buckets than timestamps would be pointless.
            self._buckets = [_Bucket() for _ in range(min(num_buckets, duration))]
        self._first_time = 1
        self._latest_time = 0

    def is_all_time(self) -> bool:
        """Return whether this series keeps all data ever added."""
        return self._duration == 0

    def duration(self) -> int:
        """Return the window length in seconds (0 for all-time)."""
        return self._duration

    def _empty(self) -> bool:
        return self._first_time > self._latest_time

    def _bucket_idx(self, time: int) -> int:
        return (time % self._duration) * len(self._buckets) // self._duration

    def _bucket_info(self, time: int) -> tuple[int, int, int]:
        n = len(self._buckets)
        duration = self._duration
        time_mod = time % duration
        full_durations = time // duration
        scaled = time_mod * n
        idx = scaled // duration
        scaled_start = scaled - scaled % duration
        scaled_next = scaled_start + duration
        duration_start = full_durations * duration
        start = (scaled_start + n - 1) // n + duration_start
        next_start = (scaled_next + n - 1) // n + duration_start
        return idx, start, next_start

    def _earliest_time_non_empty(self) -> int:
        _, _, next_start = self._bucket_info(self._latest_time)
        return next_start - self._duration

    def _earliest_time(self) -> int:
        if self._empty():
            return 0
        if self.is_all_time():
            return self._first_time
        return max(self._earliest_time_non_empty(), self._first_time)

    def _update_buckets(self, now: int) -> int:
        current, current_start, next_start = self._bucket_info(self._latest_time)
        self._latest_time = now
        if now < next_start:
            return current
        if now >= current_start + self._duration:
            for bucket in self._buckets:
                bucket.clear()
            self._total.clear()
            return self._bucket_idx(self._latest_time)
        new_bucket, _, _ = self._bucket_info(now)
        idx = current
        while idx != new_bucket:
            idx = (idx + 1) % len(self._buckets)
            self._total.subtract(self._buckets[idx])
            self._buckets[idx].clear()
        return new_bucket

    def add_value(self, now: int, value: int, times: int = 1) -> bool:
        """Add value, times times over, at time now.

        Returns False if now is older than the window can track.
        """
        return self.add_value_aggregated(now, value * times, times)

    def add_value_aggregated(self, now: int, total: int, nsamples: int) -> bool:
        """Add nsamples samples summing to total at time now.

        Returns False if now is older than the window can track.
        """
        if self.is_all_time():
            if self._empty():
                self._first_time = now
                self._latest_time = now
            elif now > self._latest_time:
                self._latest_time = now
            elif now < self._first_time:
                self._first_time = now
            self._total.add(total, nsamples)
            return True

        if self._empty():
            self._first_time = now
            self._latest_time = now
            idx = self._bucket_idx(now)
        elif now > self._latest_time:
            idx = self._update_buckets(now)
        elif now == self._latest_time:
            idx = self._bucket_idx(now)
        else:
            if now < self._earliest_time_non_empty():
                return False
            idx = self._bucket_idx(now)
        self._total.add(total, nsamples)
        self._buckets[idx].add(total, nsamples)
        return True

    def update(self, now: int) -> None:
        """Advance the series to time now, expiring old data."""
        if self._empty():
            self._first_time = now
        if self.is_all_time():
            self._latest_time = max(self._latest_time, now)
            return
        if now <= self._latest_time:
            return
        self._update_buckets(now)

    def clear(self) -> None:
        """Remove all data."""
        for bucket in self._buckets:
            bucket.clear()
        self._total.clear()
        self._first_time = 1
        self._latest_time = 0

    def sum(self) -> int:
        """Return the sum of the values in the window."""
        return self._total.sum

    def count(self) -> int:
        """Return the number of samples in the window."""
        return self._total.count

    def avg(self) -> float:
        """Return the mean value, or 0 if there are no samples."""
        if self._total.count == 0:
            return 0.0
        return self._total.sum / self._total.count

    def elapsed(self) -> int:
        """Return the number of seconds covered by the tracked data."""
        if self._empty():
            return 0
        return self._latest_time - self._earliest_time() + 1

    def rate(self) -> float:
        """Return the sum per second over the elapsed time."""
        elapsed = self.elapsed()
        if elapsed == 0:
            return 0.0
        return self._total.sum / elapsed


class MultiLevelTimeSeries:
    """Several bucketed time series of increasing duration fed together.

    Durations must strictly increase; a duration of 0 means all-time and
    may only be the last level.
    """

    def __init__(
        self, num_levels: int, num_buckets: int, level_durations: Sequence[int]
    ) -> None:
        if num_levels < 1:
            raise ValueError("at least one level is required")
        durations = list(level_durations)
        if len(durations) < num_levels:
            raise ValueError("fewer level durations than levels")
        durations = durations[:num_levels]
        self._levels: list[BucketedTimeSeries] = []
        for i, duration in enumerate(durations):
            if duration == 0:
                if i != num_levels - 1:
                    raise ValueError("an all-time level must be the last level")
            elif i > 0 and not durations[i - 1] < duration:
                raise ValueError("level durations must strictly increase")
            self._levels.append(BucketedTimeSeries(num_buckets, duration))

    def num_levels(self) -> int:
        """Return the number of levels."""
        return len(self._levels)

    def get_level(self, level: int) -> BucketedTimeSeries:
        """Return the series for one level; raise IndexError if out of range."""
        if not 0 <= level < len(self._levels):
            raise IndexError(f"level {level} out of range")
        return self._levels[level]

    def add_value(self, now: int, value: int, times: int = 1) -> None:
        """Add value, times times over, to every level at time now."""
        self.add_value_aggregated(now, value * times, times)

    def add_value_aggregated(self, now: int, total: int, nsamples: int) -> None:
        """Add nsamples samples summing to total to every level."""
        for level in self._levels:
            level.add_value_aggregated(now, total, nsamples)

    def update(self, now: int) -> None:
        """Advance every level to time now."""
        for level in self._levels:
            level.update(now)

    def clear(self) -> None:
        """Remove all data from every level."""
        for level in self._levels:
            level.clear()

    def sum(self, level: int) -> int:
        """Return the sum at the given level."""
        return self.get_level(level).sum()

    def count(self, level: int) -> int:
        """Return the sample count at the given level."""
        return self.get_level(level).count()

    def avg(self, level: int) -> float:
        """Return the mean value at the given level."""
        return self.get_level(level).avg()

    def rate(self, level: int) -> float:
        """Return the sum per second at the given level."""
        return self.get_level(level).rate()


MINUTE_DURATIONS = (60, 0)
MINUTE_HOUR_DURATIONS = (60, 3600, 0)
MINUTE_TEN_MINUTE_HOUR_DURATIONS = (60, 600, 3600, 0)
MINUTE_HOUR_DAY_DURATIONS = (60, 3600, 86400, 0)
MINUTE_TEN_MINUTE_DURATIONS = (60, 600, 0)
TEN_MINUTE_HOUR_DURATIONS = (600, 3600)
QUARTER_MINUTE_ONLY_DURATIONS = (15,)
MINUTE_ONLY_DURATIONS = (60,)
TEN_MINUTE_ONLY_DURATIONS = (600,)
MINUTE_TEN_MINUTE_ONLY_DURATIONS = (60, 600)
HOUR_DURATIONS = (3600, 0)
TEN_MINUTES_CHUNKS_DURATIONS = (600, 1200, 1800)


class _PresetTimeSeries(MultiLevelTimeSeries):
    NUM_BUCKETS = 60
    DURATIONS: tuple[int, ...] = ()

    def __init__(self) -> None:
        super().__init__(len(self.DURATIONS), self.NUM_BUCKETS, self.DURATIONS)


class MinuteTimeSeries(_PresetTimeSeries):
    """Last minute and all-time."""

    class Levels(IntEnum):
        MINUTE = 0
        ALLTIME = 1

    DURATIONS = MINUTE_DURATIONS


class MinuteHourTimeSeries(_PresetTimeSeries):
    """Last minute, last hour and all-time."""

    class Levels(IntEnum):
        MINUTE = 0
        HOUR = 1
        ALLTIME = 2

    DURATIONS = MINUTE_HOUR_DURATIONS


class MinuteTenMinuteHourTimeSeries(_PresetTimeSeries):
    """Last minute, ten minutes, hour and all-time."""

    class Levels(IntEnum):
        MINUTE = 0
        TEN_MINUTE = 1
        HOUR = 2
        ALLTIME = 3

    DURATIONS = MINUTE_TEN_MINUTE_HOUR_DURATIONS


class MinuteHourDayTimeSeries(_PresetTimeSeries):
    """Last minute, hour, day and all-time."""

    class Levels(IntEnum):
        MINUTE = 0
        HOUR = 1
        DAY = 2
        ALLTIME = 3

    DURATIONS = MINUTE_HOUR_DAY_DURATIONS


class MinuteTenMinuteTimeSeries(_PresetTimeSeries):
    """Last minute, ten minutes and all-time."""

    class Levels(IntEnum):
        MINUTE = 0
        TEN_MINUTE = 1
        ALLTIME = 2

    DURATIONS = MINUTE_TEN_MINUTE_DURATIONS


class TenMinuteHourTimeSeries(_PresetTimeSeries):
    """Last ten minutes and hour."""

    class Levels(IntEnum):
        TEN_MINUTE = 0
        HOUR = 1

    DURATIONS = TEN_MINUTE_HOUR_DURATIONS


class QuarterMinuteOnlyTimeSeries(_PresetTimeSeries):
    """Last fifteen seconds only."""

    class Levels(IntEnum):
        QUARTER_MINUTE = 0

    NUM_BUCKETS = 15
    DURATIONS = QUARTER_MINUTE_ONLY_DURATIONS


class MinuteOnlyTimeSeries(_PresetTimeSeries):
    """Last minute only."""

    class Levels(IntEnum):
        MINUTE = 0

    DURATIONS = MINUTE_ONLY_DURATIONS


class TenMinuteOnlyTimeSeries(_PresetTimeSeries):
    """Last ten minutes only."""

    class Levels(IntEnum):
        TEN_MINUTE = 0

    DURATIONS = TEN_MINUTE_ONLY_DURATIONS


class MinuteTenMinuteOnlyTimeSeries(_PresetTimeSeries):
    """Last minute and ten minutes."""

    class Levels(IntEnum):
        MINUTE = 0
        TEN_MINUTE = 1

    DURATIONS = MINUTE_TEN_MINUTE_ONLY_DURATIONS


class HourTimeSeries(_PresetTimeSeries):
    """Last hour and all-time."""

    class Levels(IntEnum):
        HOUR = 0
        ALLTIME = 1

    DURATIONS = HOUR_DURATIONS


class TenMinutesChunksTimeSeries(_PresetTimeSeries):
    """Last ten, twenty and thirty minutes."""

    class Levels(IntEnum):
        TEN_MINUTES = 0
        TWENTY_MINUTES = 1
        THIRTY_MINUTES = 2

    DURATIONS = TEN_MINUTES_CHUNKS_DURATIONS