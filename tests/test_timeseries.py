import pytest

from servicestats.timeseries import (
    BucketedTimeSeries,
    HourTimeSeries,
    MinuteHourTimeSeries,
    MinuteTenMinuteHourTimeSeries,
    MultiLevelTimeSeries,
    QuarterMinuteOnlyTimeSeries,
    TenMinutesChunksTimeSeries,
)


def test_all_time_series_keeps_everything():
    series = BucketedTimeSeries(60, 0)
    values = [3, 9, 4]
    for t, value in zip([10, 5000, 900000], values):
        assert series.add_value(t, value)
    assert series.is_all_time()
    assert series.sum() == sum(values)
    assert series.count() == len(values)


def test_empty_series():
    series = BucketedTimeSeries(60, 60)
    assert series.sum() == 0
    assert series.count() == 0
    assert series.avg() == 0
    assert series.rate() == 0
    assert series.elapsed() == 0


def test_negative_duration_rejected():
    with pytest.raises(ValueError):
        BucketedTimeSeries(10, -1)


def test_zero_buckets_rejected():
    with pytest.raises(ValueError):
        BucketedTimeSeries(0, 60)


def test_first_value_elapsed_is_one_second():
    series = BucketedTimeSeries(60, 60)
    series.add_value(100, 8)
    assert series.elapsed() == 1


def test_rate_is_sum_over_elapsed():
    series = BucketedTimeSeries(60, 60)
    series.add_value(100, 8)
    series.add_value(110, 4)
    series.update(130)
    assert series.elapsed() > 1
    assert series.rate() == series.sum() / series.elapsed()


def test_avg_is_sum_over_count():
    series = BucketedTimeSeries(60, 60)
    series.add_value(100, 5)
    series.add_value(101, 6)
    assert series.avg() == series.sum() / series.count()


def test_add_value_times():
    series = BucketedTimeSeries(60, 60)
    value, times = 4, 3
    series.add_value(50, value, times)
    assert series.count() == times
    assert series.sum() == value * times


def test_add_value_aggregated():
    series = BucketedTimeSeries(60, 60)
    series.add_value_aggregated(50, 36, 12)
    assert series.sum() == 36
    assert series.count() == 12


def test_too_old_value_is_dropped():
    series = BucketedTimeSeries(60, 60)
    series.add_value(1000, 1)
    assert not series.add_value(900, 5)
    assert series.sum() == 1
    assert series.count() == 1


def test_recent_past_value_is_accepted():
    series = BucketedTimeSeries(60, 60)
    series.add_value(1000, 1)
    assert series.add_value(990, 2)
    assert series.sum() == 1 + 2


def test_update_expires_whole_window():
    series = BucketedTimeSeries(60, 60)
    series.add_value(0, 7)
    series.update(500)
    assert series.sum() == 0
    assert series.count() == 0


def test_clear_resets():
    series = BucketedTimeSeries(60, 60)
    series.add_value(100, 3)
    series.clear()
    assert series.sum() == 0
    assert series.count() == 0
    assert series.elapsed() == 0


def test_multi_level_rejects_non_increasing_durations():
    with pytest.raises(ValueError):
        MultiLevelTimeSeries(2, 60, [600, 60])


def test_multi_level_rejects_all_time_before_last():
    with pytest.raises(ValueError):
        MultiLevelTimeSeries(2, 60, [0, 60])


def test_multi_level_rejects_missing_durations():
    with pytest.raises(ValueError):
        MultiLevelTimeSeries(3, 60, [60, 600])


def test_get_level_out_of_range():
    series = MinuteHourTimeSeries()
    with pytest.raises(IndexError):
        series.get_level(series.num_levels())
    with pytest.raises(IndexError):
        series.get_level(-1)


def test_minute_level_expires_before_hour():
    series = MinuteHourTimeSeries()
    levels = MinuteHourTimeSeries.Levels
    value = 7
    series.add_value(0, value)
    series.update(61)
    assert series.sum(levels.MINUTE) == 0
    assert series.sum(levels.HOUR) == value
    assert series.sum(levels.ALLTIME) == value


def test_partial_expiry_of_minute_level():
    series = MinuteHourTimeSeries()
    levels = MinuteHourTimeSeries.Levels
    first, second = 1, 2
    series.add_value(0, first)
    series.add_value(30, second)
    series.update(65)
    assert series.sum(levels.MINUTE) == second
    assert series.count(levels.MINUTE) == 1
    assert series.sum(levels.HOUR) == first + second


def test_multi_level_clear():
    series = HourTimeSeries()
    series.add_value(10, 5)
    series.clear()
    for level in range(series.num_levels()):
        assert series.sum(level) == 0
        assert series.count(level) == 0


def test_preset_durations():
    series = MinuteTenMinuteHourTimeSeries()
    durations = [series.get_level(i).duration() for i in range(series.num_levels())]
    assert durations == [60, 600, 3600, 0]
    assert series.get_level(MinuteTenMinuteHourTimeSeries.Levels.ALLTIME).is_all_time()


def test_preset_level_counts_match_enums():
    for cls in (QuarterMinuteOnlyTimeSeries, TenMinutesChunksTimeSeries, HourTimeSeries):
        assert cls().num_levels() == len(cls.Levels)


def test_multi_level_avg_and_rate_consistency():
    series = MinuteHourTimeSeries()
    series.add_value(100, 10)
    series.add_value(120, 20)
    level = series.get_level(MinuteHourTimeSeries.Levels.MINUTE)
    assert series.avg(0) == series.sum(0) / series.count(0)
    assert series.rate(0) == series.sum(0) / level.elapsed()