"""Date and time normalization for broker exports.

Accepted date shapes::

    2024-03-05            ISO (anything after the date is ignored)
    05/03/2024            a/b/yyyy, day or month first (see below)
    05-03-2024            dd-mm-yyyy
    05-Mar-2024           dd-Mon-yyyy (also "05 Mar 2024")

``a/b/yyyy`` is ambiguous.  When one component exceeds 12 it must be
the day; otherwise ``day_first`` decides.
"""

from __future__ import annotations

import re
from datetime import date, time

_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")
_SLASHED = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})")
_DASHED = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})")
_NAMED = re.compile(r"^(\d{1,2})[-\s]([A-Za-z]{3})[A-Za-z]*[-\s,]+(\d{4})")
_TIME = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?")

_MONTHS = {
    name: i + 1
    for i, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun",
         "jul", "aug", "sep", "oct", "nov", "dec"]
    )
}


def _safe_date(y: int, m: int, d: int) -> date | None:
    try:
        return date(y, m, d)
    except ValueError:
        return None


def normalize_date(raw: str | None, *, day_first: bool = False) -> date | None:
    """Parse a broker date string, or return ``None`` if unrecognized."""
    if not raw:
        return None
    text = raw.strip()

    m = _ISO.match(text)
    if m:
        y, mo, d = (int(g) for g in m.groups())
        return _safe_date(y, mo, d)

    m = _SLASHED.match(text)
    if m:
        a, b, y = (int(g) for g in m.groups())
        if a > 12:
            day, month = a, b
        elif b > 12:
            month, day = a, b
        elif day_first:
            day, month = a, b
        else:
            month, day = a, b
        return _safe_date(y, month, day)

    m = _DASHED.match(text)
    if m:
        d, mo, y = (int(g) for g in m.groups())
        return _safe_date(y, mo, d)

    m = _NAMED.match(text)
    if m:
        month = _MONTHS.get(m.group(2).lower())
        if month is None:
            return None
        return _safe_date(int(m.group(3)), month, int(m.group(1)))

    return None


def normalize_time(raw: str | None, *, strict: bool = False) -> time | None:
    """Parse ``HH:MM[:SS]``, keeping seconds so same-minute legs order correctly.

    With ``strict`` the hour must be two digits, as contract notes write it.
    """
    if not raw:
        return None
    m = _TIME.search(raw.strip())
    if not m:
        return None
    if strict and len(m.group(1)) != 2:
        return None
    hour, minute = int(m.group(1)), int(m.group(2))
    second = int(m.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        return None
    return time(hour, minute, second)
