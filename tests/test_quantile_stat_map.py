import pytest

from servicestats.quantile_stat import QuantileEstimates, QuantileStat
from servicestats.quantile_stat_map import (
    QuantileStatMap,
    StatDef,
    extract_value,
    make_key,
    stat_duration,
)
from servicestats.timeseries_exporter import ExportType


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


DEFS = [
    StatDef(ExportType.SUM),
    StatDef(ExportType.COUNT),
    StatDef(ExportType.AVG),
    StatDef(ExportType.RATE),
    StatDef(ExportType.PERCENT, 0.5),
]


def make_map(values=(), use_count_for_rate=False):
    clock = FakeClock(0.0)
    qmap = QuantileStatMap(clock=clock, use_count_for_rate=use_count_for_rate)
    stat = QuantileStat([(60, 1)], clock=clock)
    qmap.register_quantile_stat("MyStat", stat, DEFS)
    clock.t = 10.0
    for v in values:
        stat.add_value(v, 10.0)
    return qmap, stat, clock


def test_make_key_percentile_with_window():
    assert make_key("MyStat", StatDef(ExportType.PERCENT, 0.99), 60) == "MyStat.p99.60"


def test_make_key_plain_types():
    assert make_key("MyStat", StatDef(ExportType.SUM)) == "MyStat.sum"
    assert make_key("MyStat", StatDef(ExportType.COUNT), 60) == "MyStat.count.60"
    assert make_key("MyStat", StatDef(ExportType.AVG)) == "MyStat.avg"
    assert make_key("MyStat", StatDef(ExportType.RATE), 60) == "MyStat.rate.60"


def test_stat_duration_caps_at_window():
    assert stat_duration(None, 0.0, 100.0) == 100
    assert stat_duration(60, 0.0, 100.0) == 60
    assert stat_duration(200, 0.0, 100.0) == 100


def test_extract_avg_of_empty_is_zero():
    assert extract_value(StatDef(ExportType.AVG), QuantileEstimates(), 10) == 0


def test_extract_rate_without_duration_is_count():
    est = QuantileEstimates(sum=50.0, count=5.0)
    assert extract_value(StatDef(ExportType.RATE), est, 0) == 5
    assert extract_value(StatDef(ExportType.RATE), est, 5) == 10
    assert extract_value(StatDef(ExportType.RATE), est, 5, use_count_for_rate=True) == 1


def test_extract_missing_quantile_raises():
    with pytest.raises(KeyError):
        extract_value(StatDef(ExportType.PERCENT, 0.9), QuantileEstimates(), 1)


def test_extract_clamps_to_int64():
    est = QuantileEstimates(sum=1e30, count=1.0)
    assert extract_value(StatDef(ExportType.SUM), est, 1) == 2**63 - 1
    est = QuantileEstimates(sum=-1e30, count=1.0)
    assert extract_value(StatDef(ExportType.SUM), est, 1) == -(2**63)


def test_register_creates_keys_for_all_time_and_window():
    qmap, _, _ = make_map()
    for d in DEFS:
        assert make_key("MyStat", d) in qmap
        assert make_key("MyStat", d, 60) in qmap
    assert len(qmap) == 2 * len(DEFS)
    assert qmap.keys() == sorted(qmap.keys())


def test_register_twice_returns_first_stat():
    qmap, stat, clock = make_map()
    other = QuantileStat([(30, 2)], clock=clock)
    assert qmap.register_quantile_stat("MyStat", other, DEFS) is stat
    assert qmap.get("MyStat") is stat
    assert "MyStat.sum.60" in qmap


def test_get_values_reflect_added_values():
    values = [1.0, 2.0, 3.0]
    qmap, _, _ = make_map(values)
    out = qmap.get_values()
    assert out["MyStat.count"] == len(values)
    assert out["MyStat.count.60"] == len(values)
    assert out["MyStat.sum"] == int(sum(values))
    assert out["MyStat.p50"] == 2
    assert list(out) == sorted(out)
    assert set(out) == set(qmap.keys())


def test_get_value_matches_get_values():
    qmap, _, _ = make_map([4.0, 8.0, 15.0])
    everything = qmap.get_values()
    for key in qmap.keys():
        assert qmap.get_value(key) == everything[key]


def test_get_selected_values_is_subset():
    qmap, _, _ = make_map([4.0, 8.0])
    everything = qmap.get_values()
    wanted = ["MyStat.sum", "MyStat.avg.60", "MyStat.p50", "missing.key"]
    selected = qmap.get_selected_values(wanted)
    assert set(selected) == {"MyStat.sum", "MyStat.avg.60", "MyStat.p50"}
    for key, value in selected.items():
        assert value == everything[key]


def test_rate_uses_count_when_legacy_flag_set():
    values = [10.0, 10.0]
    qmap, _, _ = make_map(values, use_count_for_rate=True)
    legacy = qmap.get_value("MyStat.rate")
    qmap2, _, _ = make_map(values)
    modern = qmap2.get_value("MyStat.rate")
    assert legacy == len(values) // 10
    assert modern == int(sum(values)) // 10


def test_unknown_lookups():
    qmap, _, _ = make_map()
    assert qmap.get_value("nope") is None
    assert qmap.get("nope") is None
    assert "nope" not in qmap
    assert qmap.get_snapshot_entry("nope") is None


def test_snapshot_entry():
    qmap, _, _ = make_map([5.0])
    entry = qmap.get_snapshot_entry("MyStat", 10.0)
    assert entry.name == "MyStat"
    assert entry.stat_defs == DEFS
    assert entry.snapshot.now == 10.0
    assert entry.snapshot.all_time_digest.values == (5.0,)


def test_flush_all_and_forget_all():
    qmap, stat, _ = make_map([1.0, 2.0])
    qmap.flush_all()
    assert stat.get_snapshot(10.0).all_time_digest.count == 2
    qmap.forget_all()
    assert len(qmap) == 0
    assert qmap.get_values() == {}
    assert qmap.get("MyStat") is None