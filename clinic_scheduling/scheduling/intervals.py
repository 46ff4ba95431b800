"""Half-open ``[start, end)`` datetime intervals.

An interval ending exactly when another starts does not overlap it, which is
what allows back-to-back appointments.
"""

from bisect import bisect_right
from datetime import datetime, timedelta
from typing import Iterable, NamedTuple


class Interval(NamedTuple):
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: 'Interval') -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: 'Interval') -> bool:
        return self.start <= other.start and other.end <= self.end

    def clip(self, bounds: 'Interval') -> 'Interval | None':
        start = max(self.start, bounds.start)
        end = min(self.end, bounds.end)
        if start >= end:
            return None
        return Interval(start, end)


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Merge overlapping or touching intervals into a sorted, disjoint list."""
    ordered = sorted(intervals)
    merged: list[Interval] = []

    for current in ordered:
        if current.start >= current.end:
            continue
        if merged and current.start <= merged[-1].end:
            if current.end > merged[-1].end:
                merged[-1] = Interval(merged[-1].start, current.end)
        else:
            merged.append(current)

    return merged


def subtract_merged(
    base: Interval,
    merged: list[Interval],
    ends: list[datetime] | None = None,
) -> list[Interval]:
    """Return the parts of ``base`` not covered by ``merged``.

    ``merged`` must be sorted and disjoint, as returned by :func:`merge_intervals`,
    so its end times are sorted too. The first candidate is found by binary
    search on ``ends``; callers walking many days over one merged list pass the
    precomputed ``ends`` to avoid rebuilding it.
    """
    if ends is None:
        ends = [interval.end for interval in merged]

    free: list[Interval] = []
    cursor = base.start
    index = bisect_right(ends, base.start)

    while index < len(merged) and merged[index].start < base.end:
        occupied = merged[index]
        if occupied.start > cursor:
            free.append(Interval(cursor, occupied.start))
        cursor = max(cursor, occupied.end)
        index += 1

    if cursor < base.end:
        free.append(Interval(cursor, base.end))

    return free
