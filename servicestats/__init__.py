"""Callback counters, an LRU map, lock policies, multi-level timeseries and quantile stats for monitoring a running service."""

__version__ = "0.1.0"