# servicestats

Building blocks for tracking a service's runtime statistics inside the
process and reading them back as named integer counters. It uses only the
standard library.

## Modules

- `servicestats.callback_values`: `CallbackValuesMap` maps names to
  callbacks; a callback runs only when its value is read (`get_value`,
  `get_values`). Callbacks are never run while the map's lock is held.
  `DynamicCounters` (integer values, with `get_counters` / `get_counter`)
  and `DynamicStrings` are typed variants.
- `servicestats.lru`: `SimpleLRUMap`, a bounded least-recently-used map with
  `find`, `peek`, `touch`, `set` / `try_set`, `get_or_create` /
  `try_get_or_create`, `erase`, `set_capacity` and hit/miss statistics
  (`hits`, `misses`, `hit_ratio`). Storing into a map with no capacity raises
  `NoCapacityError` (or returns 0 / `None` from the `try_` forms); missing
  keys raise `KeyError`. Evict callbacks receive the evicted key and value.
- `servicestats.lock_traits`: lock policies. `TLStatsNoLocking` hands out
  non-blocking locks (in debug mode a `DebugCheckedLock` that raises
  `WrongThreadError` when used from a second thread) and `PlainCounter`;
  `TLStatsThreadSafe` hands out real locks and `AtomicCounter`. Also
  `MutexWrapper`, a plain mutex usable as a context manager.
- `servicestats.limits`: `get_counter_limit_from_request(headers)` reads the
  `fb303_counters_read_limit` header from a mapping, and
  `add_counters_available_to_response(write_headers, available)` sets
  `fb303_counters_available` unless it is already present.
- `servicestats.timeseries`: `BucketedTimeSeries`, `MultiLevelTimeSeries`
  and presets such as `MinuteTimeSeries`, `MinuteTenMinuteHourTimeSeries`,
  `MinuteHourDayTimeSeries`, `QuarterMinuteOnlyTimeSeries` and
  `TenMinutesChunksTimeSeries`. Times are integer seconds; a duration of 0
  means all-time.
- `servicestats.timeseries_exporter`: `ExportType` (`SUM`, `COUNT`, `AVG`,
  `RATE`, `PERCENT`), `SynchronizedStat`, `counter_name`, `stat_value`,
  `export_stat` and `unexport_stat`. Each level is exported as
  `<name>.<type>` (all-time) or `<name>.<type>.<seconds>`.
- `servicestats.quantile_stat`: `QuantileStat` keeps an all-time estimator
  and any number of sliding windows, with `get_estimates`, `get_snapshot`
  and `flush`. Values are buffered until flushed or read.
- `servicestats.quantile_stat_map`: `QuantileStatMap` registers quantile
  stats under a base name with `StatDef` definitions and serves them as
  keys such as `latency.p99` and `latency.p99.60`, via `get_value`,
  `get_values` and `get_selected_values`. Values are clamped to 64-bit
  integers.

## Install

```
pip install .
```

## Example

```python
import time

from servicestats.callback_values import DynamicCounters
from servicestats.timeseries import MinuteTenMinuteHourTimeSeries
from servicestats.timeseries_exporter import ExportType, SynchronizedStat, export_stat

counters = DynamicCounters()
stat = SynchronizedStat(MinuteTenMinuteHourTimeSeries())
export_stat(stat, ExportType.SUM, "requests", counters)

with stat as series:
    series.add_value(int(time.time()), 5)

print(counters.keys())
# ['requests.sum', 'requests.sum.3600', 'requests.sum.60', 'requests.sum.600']
print(counters.get_counters())
# each counter reads 5 while the value is inside its window
```

Reading a counter brings its series up to the current time first, so
windowed values decay to 0 when no new values arrive.

## What it does not do

The package keeps and computes statistics in memory only. It has no server
or RPC handler that serves the counters, no background thread that
publishes or aggregates them, and no per-thread stats containers; the
header helpers in `servicestats.limits` work on plain dictionaries that the
caller supplies. Quantile digests keep every value they cover exactly
rather than a compressed summary.

## Tests

```
pip install .[test]
pytest
```