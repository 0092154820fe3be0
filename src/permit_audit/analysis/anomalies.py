"""Flag members whose permit history looks like abuse of the guest-plate scheme."""

from collections.abc import Iterable, Sequence
from itertools import combinations

import structlog
from attrs import define, field, validators

from ..data.models import Permit
from .grouping import MemberGroup
from .intervals import duration_days

logger = structlog.get_logger(__name__)

MIN_SHORT_PERMITS = 3
SEVERITY_PER_ISSUE = 10
SEVERITY_PLATE_CAP = 50


@define(slots=True, frozen=True, kw_only=True)
class SuspicionCriteria:
    """Thresholds used when screening member groups."""

    min_plates: int = field(default=10, validator=validators.ge(1))
    short_duration_days: int = field(default=30, validator=validators.ge(0))
    check_overlaps: bool = True


@define(slots=True, frozen=True)
class FlaggedMember:
    """A member with at least one issue and the evidence behind it."""

    member: str
    plate_count: int
    issues: tuple[str, ...]
    severity: int
    permits: tuple[Permit, ...]


def severity_score(issue_count: int, plate_count: int) -> int:
    """Weight the number of issues and, up to a cap, the number of plates."""
    return issue_count * SEVERITY_PER_ISSUE + min(plate_count, SEVERITY_PLATE_CAP)


def same_plate_overlaps(permits: Sequence[Permit]) -> list[tuple[Permit, Permit]]:
    """Pairs of fully dated permits for the same plate whose ranges touch or intersect."""
    dated = [permit for permit in permits if permit.has_both_dates]
    return [
        (first, second)
        for first, second in combinations(dated, 2)
        if first.plate == second.plate
        and first.start_date <= second.end_date
        and second.start_date <= first.end_date
    ]


def _short_permits(permits: Iterable[Permit], max_days: int) -> int:
    """Count permits lasting at most ``max_days``; zero-day permits count too."""
    count = 0
    for permit in permits:
        days = duration_days(permit)
        if days is not None and days <= max_days:
            count += 1
    return count


def screen_group(group: MemberGroup, criteria: SuspicionCriteria) -> FlaggedMember | None:
    """Return the flagged view of ``group`` or None when nothing stands out."""
    plate_count = len(group.plates)
    issues: list[str] = []
    if plate_count >= criteria.min_plates:
        issues.append(f"{plate_count} plates registered")
    short = _short_permits(group.permits, criteria.short_duration_days)
    if short >= MIN_SHORT_PERMITS:
        issues.append(f"{short} permits of {criteria.short_duration_days} days or less")
    if criteria.check_overlaps:
        overlapping = same_plate_overlaps(group.permits)
        if overlapping:
            issues.append(f"{len(overlapping)} overlapping periods on the same plate")
    if not issues:
        return None
    return FlaggedMember(
        member=group.member,
        plate_count=plate_count,
        issues=tuple(issues),
        severity=severity_score(len(issues), plate_count),
        permits=tuple(group.permits),
    )


def find_suspicious(
    groups: Iterable[MemberGroup],
    criteria: SuspicionCriteria | None = None,
) -> list[FlaggedMember]:
    """Screen every group and return flagged members, most severe first."""
    criteria = criteria or SuspicionCriteria()
    flagged = [
        result for result in (screen_group(group, criteria) for group in groups) if result is not None
    ]
    flagged.sort(key=lambda member: member.severity, reverse=True)
    logger.info(
        "anomalies.flagged",
        flagged=len(flagged),
        min_plates=criteria.min_plates,
        short_duration_days=criteria.short_duration_days,
        check_overlaps=criteria.check_overlaps,
    )
    return flagged


__all__ = [
    "FlaggedMember",
    "SuspicionCriteria",
    "find_suspicious",
    "same_plate_overlaps",
    "screen_group",
    "severity_score",
]
