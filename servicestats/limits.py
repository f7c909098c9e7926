"""Request and response headers that bound how many counters are returned."""

from __future__ import annotations

import re
from typing import Mapping, MutableMapping

COUNTERS_LIMIT_HEADER = "fb303_counters_read_limit"
COUNTERS_AVAILABLE_HEADER = "fb303_counters_available"

_INT_PATTERN = re.compile(r"[+-]?\d+")
_INT_MIN = -(2**31)
_INT_MAX = 2**31 - 1


def _parse_int(text: str) -> int | None:
    stripped = text.strip()
    if not _INT_PATTERN.fullmatch(stripped):
        return None
    value = int(stripped)
    if not _INT_MIN <= value <= _INT_MAX:
        return None
    return value


def get_counter_limit_from_request(
    headers: Mapping[str, str] | None,
) -> int | None:
    """Return the counter limit requested in headers, or None if absent.

    A value that is not a valid non-negative integer counts as absent.
    """
    if headers is None:
        return None
    raw = headers.get(COUNTERS_LIMIT_HEADER)
    if raw is None:
        return None
    limit = _parse_int(raw)
    if limit is None or limit < 0:
        return None
    return limit


def add_counters_available_to_response(
    write_headers: MutableMapping[str, str] | None, available: int
) -> None:
    """Record how many counters exist, unless the header is already set."""
    if write_headers is None:
        return
    write_headers.setdefault(COUNTERS_AVAILABLE_HEADER, str(available))