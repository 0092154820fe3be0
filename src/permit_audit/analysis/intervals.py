"""Interval analytics over arbitrary permit subsets.

Every function here is pure and returns a neutral value (``0``, an empty
:class:`PeakResult`) for an empty subset, so filtered views can be recomputed
without special cases.
"""

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from itertools import combinations

import numpy as np

from ..data.models import Permit
from ..policy import OPEN_ENDED_SENTINEL, SHORT_PERMIT_DAYS, is_summer

ONE_DAY = timedelta(days=1)

_START = 0
_END = 1


def round_half_up(value: float, digits: int = 1) -> float:
    """Round like a spreadsheet does: halves always go away from zero."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def duration_days(permit: Permit) -> int | None:
    """Return the permit span in whole days, rounded up, or None without both dates."""
    if permit.start_date is None or permit.end_date is None:
        return None
    return math.ceil((permit.end_date - permit.start_date) / ONE_DAY)


def _dated_temporaries(subset: Iterable[Permit]) -> list[Permit]:
    return [permit for permit in subset if permit.is_temporary and permit.has_both_dates]


def average_duration(subset: Iterable[Permit]) -> float:
    """Mean span of temporary permits, each counted as at least one day."""
    durations = [max(1, duration_days(permit) or 0) for permit in _dated_temporaries(subset)]
    if not durations:
        return 0.0
    return round_half_up(float(np.mean(durations)), 1)


def short_permit_count(subset: Iterable[Permit], *, max_days: int = SHORT_PERMIT_DAYS) -> int:
    """Count temporary permits lasting ``max_days`` days or less."""
    return sum(1 for permit in _dated_temporaries(subset) if (duration_days(permit) or 0) <= max_days)


def _comparable_bounds(subset: Iterable[Permit]) -> list[tuple[Permit, datetime, datetime]]:
    """Pair each permit having a start with its end, open ends mapped to the sentinel."""
    return [
        (permit, permit.start_date, permit.end_date or OPEN_ENDED_SENTINEL)
        for permit in subset
        if permit.start_date is not None
    ]


def _intersects(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def _pairwise_intersections(bounds: Sequence[tuple[Permit, datetime, datetime]]) -> int:
    return sum(
        1
        for (_, start_a, end_a), (_, start_b, end_b) in combinations(bounds, 2)
        if _intersects(start_a, end_a, start_b, end_b)
    )


def _swept_intersections(bounds: Sequence[tuple[Permit, datetime, datetime]]) -> int:
    """Count intersecting pairs in O(n log n) by counting the disjoint ones.

    A pair is disjoint when one interval ends at or before the other starts.
    Counting, for every start, how many ends precede it gives the ordered
    disjoint pairs; pairs disjoint in both directions (identical zero-length
    intervals) are the only double counts once inverted ranges are excluded.
    """
    n = len(bounds)
    if n < 2:
        return 0
    starts = np.array([start for _, start, _ in bounds], dtype="datetime64[us]")
    ends = np.array([end for _, _, end in bounds], dtype="datetime64[us]")
    if np.any(ends < starts):
        return _pairwise_intersections(bounds)
    sorted_ends = np.sort(ends)
    preceding = np.searchsorted(sorted_ends, starts, side="right")
    points = starts[ends == starts]
    ordered_disjoint = int(preceding.sum()) - len(points)
    _, repeats = np.unique(points, return_counts=True)
    both_ways = int(sum(int(k) * (int(k) - 1) // 2 for k in repeats))
    return n * (n - 1) // 2 - (ordered_disjoint - both_ways)


def overlap_count_pairwise(subset: Iterable[Permit], *, distinct_plates: bool = True) -> int:
    """Reference O(n^2) overlap count over every unordered permit pair."""
    bounds = _comparable_bounds(subset)
    return sum(
        1
        for (first, start_a, end_a), (second, start_b, end_b) in combinations(bounds, 2)
        if not (distinct_plates and first.plate == second.plate)
        and _intersects(start_a, end_a, start_b, end_b)
    )


def overlap_count(subset: Iterable[Permit], *, distinct_plates: bool = True) -> int:
    """Count pairs of permits whose validity intervals intersect.

    Open-ended permits run until a far-future sentinel and permits without a
    start date are left out. With ``distinct_plates`` (the default) pairs that
    share a plate are not counted.
    """
    bounds = _comparable_bounds(subset)
    total = _swept_intersections(bounds)
    if not distinct_plates:
        return total
    by_plate: dict[str, list[tuple[Permit, datetime, datetime]]] = {}
    for entry in bounds:
        by_plate.setdefault(entry[0].plate, []).append(entry)
    same_plate = sum(_swept_intersections(entries) for entries in by_plate.values() if len(entries) > 1)
    return total - same_plate


@dataclass(frozen=True)
class PeakResult:
    """Largest number of temporary permits active at once."""

    count: int = 0
    at_date: datetime | None = None
    active_plates: tuple[str, ...] = ()


def peak_simultaneous(subset: Iterable[Permit]) -> PeakResult:
    """Sweep start/end events of dated temporary permits to find the busiest moment.

    Events sharing a timestamp are processed starts first, so a permit ending on
    the day another begins counts as simultaneous with it. Inverted ranges are
    treated as zero-length at their start date.
    """
    events: list[tuple[datetime, int, int, str]] = []
    for order, permit in enumerate(_dated_temporaries(subset)):
        start = permit.start_date
        end = max(permit.end_date, start)
        events.append((start, _START, order, permit.plate))
        events.append((end, _END, order, permit.plate))
    events.sort(key=lambda event: (event[0], event[1], event[2]))

    active: Counter[str] = Counter()
    running = 0
    peak = PeakResult()
    for when, kind, _, plate in events:
        if kind == _START:
            running += 1
            active[plate] += 1
            if running > peak.count:
                peak = PeakResult(count=running, at_date=when, active_plates=tuple(active))
        else:
            running -= 1
            active[plate] -= 1
            if active[plate] <= 0:
                del active[plate]
    return peak


@dataclass(frozen=True)
class SeasonalFrequency:
    """Average permits per active month, split by season class."""

    summer: float = 0.0
    winter: float = 0.0


def _monthly_buckets(subset: Iterable[Permit]) -> Counter[tuple[int, int]]:
    return Counter(
        (permit.start_date.year, permit.start_date.month)
        for permit in subset
        if permit.start_date is not None
    )


def seasonal_frequency(subset: Iterable[Permit]) -> SeasonalFrequency:
    """Average the per-month permit counts separately for summer and winter months.

    Months without permits are left out of the average rather than counted as zero.
    """
    buckets = _monthly_buckets(subset)
    summer = [count for (_, month), count in buckets.items() if is_summer(month)]
    winter = [count for (_, month), count in buckets.items() if not is_summer(month)]
    return SeasonalFrequency(
        summer=round_half_up(float(np.mean(summer)), 1) if summer else 0.0,
        winter=round_half_up(float(np.mean(winter)), 1) if winter else 0.0,
    )


def monthly_frequency(subset: Iterable[Permit]) -> float:
    """Average permits per calendar month that saw at least one permit."""
    buckets = _monthly_buckets(subset)
    if not buckets:
        return 0.0
    return round_half_up(sum(buckets.values()) / len(buckets), 1)


@dataclass(frozen=True)
class IntervalSummary:
    """Bundle of interval metrics computed over one permit subset."""

    average_duration: float = 0.0
    short_permits: int = 0
    overlaps: int = 0
    peak: PeakResult = field(default_factory=PeakResult)
    seasonal: SeasonalFrequency = field(default_factory=SeasonalFrequency)


def summarize_intervals(
    subset: Sequence[Permit],
    *,
    short_permit_days: int = SHORT_PERMIT_DAYS,
) -> IntervalSummary:
    """Compute a consistent set of interval metrics for a permit subset."""
    return IntervalSummary(
        average_duration=average_duration(subset),
        short_permits=short_permit_count(subset, max_days=short_permit_days),
        overlaps=overlap_count(subset),
        peak=peak_simultaneous(subset),
        seasonal=seasonal_frequency(subset),
    )


__all__ = [
    "IntervalSummary",
    "PeakResult",
    "SeasonalFrequency",
    "average_duration",
    "duration_days",
    "monthly_frequency",
    "overlap_count",
    "overlap_count_pairwise",
    "peak_simultaneous",
    "round_half_up",
    "seasonal_frequency",
    "short_permit_count",
    "summarize_intervals",
]
