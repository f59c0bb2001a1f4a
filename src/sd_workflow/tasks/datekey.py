# src/sd_workflow/tasks/datekey.py

"""
Deadline -> integer sort key.

A key is year*10000 + month*100 + day. Deadlines are free-form strings, so
several parsers are tried in order; the first one that yields a key wins.
None means "no ordering key" and is kept explicit (never a magic number).
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Callable
from datetime import datetime
from typing import Any

DateKey = int
KeyParser = Callable[[str], DateKey | None]

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_DMY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")

# Last-resort shapes; every one carries a full year, so nothing defaults to today.
_FALLBACK_FORMATS = (
    "%d.%m.%Y",
    "%Y/%m/%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)


def make_key(year: int, month: int, day: int) -> DateKey | None:
    # Syntactic check only: 2025-02-31 is accepted.
    if 1 <= month <= 12 and 1 <= day <= 31:
        return year * 10000 + month * 100 + day
    return None


def _parse_iso(s: str) -> DateKey | None:
    m = _ISO_RE.match(s)
    if not m:
        return None
    return make_key(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _parse_dmy(s: str) -> DateKey | None:
    m = _DMY_RE.match(s)
    if not m:
        return None
    return make_key(int(m.group(3)), int(m.group(2)), int(m.group(1)))


def _parse_named(s: str) -> DateKey | None:
    for fmt in _FALLBACK_FORMATS:
        try:
            dt = datetime.strptime(s, fmt)
        except ValueError:
            continue
        return make_key(dt.year, dt.month, dt.day)
    return None


PARSERS: tuple[KeyParser, ...] = (_parse_iso, _parse_dmy, _parse_named)


def deadline_key(value: Any) -> DateKey | None:
    """Return the sort key for a deadline value, or None if it is not a date."""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    for parse in PARSERS:
        key = parse(s)
        if key is not None:
            return key
    return None


def month_range(month: str | None) -> tuple[DateKey, DateKey] | None:
    """
    "YYYY-MM" -> (first-day key, last-day key), or None if malformed.
    """
    m = _MONTH_RE.match((month or "").strip())
    if not m:
        return None
    year, mon = int(m.group(1)), int(m.group(2))
    if not 1 <= mon <= 12:
        return None
    last_day = calendar.monthrange(year, mon)[1]
    return year * 10000 + mon * 100 + 1, year * 10000 + mon * 100 + last_day
