"""Helpers for day boundaries, closed intervals and string lists."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

_DAY = timedelta(days=1)


def _aware(t: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return t if t.tzinfo is not None else t.replace(tzinfo=timezone.utc)


def begin_of_day(t: datetime) -> datetime:
    """Midnight UTC of the calendar day that ``t`` falls on in its own zone."""
    return datetime(t.year, t.month, t.day, tzinfo=timezone.utc)


def end_of_day(t: datetime) -> datetime:
    """Midnight UTC of the day after the one ``t`` falls on."""
    return begin_of_day(t) + _DAY


def _aligns_to_start_of_day(t: datetime) -> bool:
    return _aware(t) == begin_of_day(t)


def split_days(start: datetime, end: datetime) -> list[datetime]:
    """Return every day boundary from ``start`` to ``end`` inclusive, in UTC.

    Both ends must lie exactly on the start of a day.
    """
    if not _aligns_to_start_of_day(start):
        raise ValueError(f"start {start.isoformat()!r} needs to align to start of day")
    if not _aligns_to_start_of_day(end):
        raise ValueError(f"end {end.isoformat()!r} needs to align to start of day")

    cur, stop = _aware(start), _aware(end)
    if stop < cur:
        raise ValueError(f"end {end.isoformat()!r} lies before start {start.isoformat()!r}")

    days = [cur.astimezone(timezone.utc)]
    while cur < stop:
        cur += _DAY
        days.append(cur.astimezone(timezone.utc))
    return days


def intersects(a: int, b: int, c: int, d: int) -> bool:
    """Whether the closed intervals [a, b] and [c, d] intersect."""
    return not (c > b or a > d)


def contains(a: int, b: int, c: int, d: int) -> bool:
    """Whether the closed interval [a, b] contains [c, d]."""
    return a <= c and b >= d


def intersection(a: int, b: int, c: int, d: int) -> tuple[int, int]:
    """The intersection of [a, b] and [c, d]; check ``intersects`` first."""
    return max(a, c), min(b, d)


def sort_unique(ss: Iterable[str]) -> list[str]:
    """Sorted list of the distinct strings in ``ss``."""
    return sorted(set(ss))