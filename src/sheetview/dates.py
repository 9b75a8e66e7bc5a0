"""Timestamp parsing for Google Forms responses in zh-TW locale.

Form response sheets record submissions as ``2025年11月27日 上午09:38:26``
(上午 = AM, 下午 = PM, 12-hour clock). Anything else goes through a generic
parser. Parsing never raises: unreadable input maps to instant ``0`` so it
sorts as the oldest entry.
"""

from __future__ import annotations

import re
from datetime import datetime

from dateutil import parser as dtparser

_ZH_TIMESTAMP_RE = re.compile(r"(\d+)年(\d+)月(\d+)日\s*(上午|下午)(\d+):(\d+):(\d+)")

_AM = "上午"
_PM = "下午"


def parse_timestamp(text: str) -> float:
    """Return the POSIX instant (seconds, local time zone) for ``text``, or 0."""
    match = _ZH_TIMESTAMP_RE.search(text)
    if match is None:
        return _parse_generic(text)

    year, month, day, period, hour, minute, second = match.groups()
    h = int(hour)
    if period == _PM and h < 12:
        h += 12
    if period == _AM and h == 12:
        h = 0

    try:
        return datetime(
            int(year), int(month), int(day), h, int(minute), int(second)
        ).timestamp()
    except (ValueError, OverflowError, OSError):
        return 0


# Two defaults differing in year, month and day: a parse that depends on
# which one is used did not find a complete date in the text.
_DISTINCT_DEFAULTS = (datetime(1970, 1, 1), datetime(1971, 2, 2))


def _parse_generic(text: str) -> float:
    if not text or not text.strip():
        return 0
    try:
        first, second = (dtparser.parse(text, default=d) for d in _DISTINCT_DEFAULTS)
    except (ValueError, OverflowError, OSError):
        # dateutil's ParserError subclasses ValueError
        return 0
    if first != second:
        return 0
    try:
        return first.timestamp()
    except (ValueError, OverflowError, OSError):
        return 0
