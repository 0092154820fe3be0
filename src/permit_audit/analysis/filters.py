"""Filtered per-member views with analytics recomputed on each subset."""

from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta

import structlog
from attrs import define, field, validators

from ..data.models import Permit, PermitType
from ..policy import SHORT_PERMIT_DAYS, is_summer
from .grouping import MemberGroup
from .intervals import PeakResult, SeasonalFrequency, summarize_intervals

logger = structlog.get_logger(__name__)

SEASONS = ("all", "summer", "winter")
PERMIT_TYPES = ("all", PermitType.TEMPORARY.value, PermitType.PERMANENT.value)


def _as_date(value: date | datetime | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def _lower(value: str | None) -> str:
    return (value or "").strip().lower()


@define(slots=True, frozen=True, kw_only=True)
class FilterCriteria:
    """Cumulative filters applied to every member's permits."""

    min_count: int = 1
    date_from: date | None = field(default=None, converter=_as_date)
    date_to: date | None = field(default=None, converter=_as_date)
    last_days: int | None = None
    season: str = field(default="all", converter=_lower, validator=validators.in_(SEASONS))
    permit_type: str = field(default="all", converter=_lower, validator=validators.in_(PERMIT_TYPES))
    name_search: str = field(default="", converter=_lower)
    now: datetime | None = None

    @property
    def has_date_filter(self) -> bool:
        """True when any date bound restricts the permits."""
        return self.date_from is not None or self.date_to is not None or bool(self.last_days)

    def cutoff(self) -> datetime | None:
        """Earliest reference date allowed by the ``last_days`` window."""
        if not self.last_days:
            return None
        return (self.now or datetime.now()) - timedelta(days=self.last_days)


@define(slots=True, frozen=True)
class MemberView:
    """Analytics for one member computed over a (possibly filtered) permit subset."""

    member: str
    permits: tuple[Permit, ...]
    total: int
    temporary: int
    permanent: int
    plate_count: int
    average_duration: float
    seasonal: SeasonalFrequency
    short_permits: int
    overlaps: int
    peak: PeakResult
    last_registered: datetime | None


def build_view(
    member: str,
    permits: Sequence[Permit],
    *,
    short_permit_days: int = SHORT_PERMIT_DAYS,
) -> MemberView:
    """Compute the view of ``permits`` for ``member`` from scratch."""
    summary = summarize_intervals(permits, short_permit_days=short_permit_days)
    temporary = sum(1 for permit in permits if permit.is_temporary)
    starts = [permit.start_date for permit in permits if permit.start_date is not None]
    return MemberView(
        member=member,
        permits=tuple(permits),
        total=len(permits),
        temporary=temporary,
        permanent=len(permits) - temporary,
        plate_count=len({permit.plate for permit in permits}),
        average_duration=summary.average_duration,
        seasonal=summary.seasonal,
        short_permits=summary.short_permits,
        overlaps=summary.overlaps,
        peak=summary.peak,
        last_registered=max(starts) if starts else None,
    )


def _date_predicate(criteria: FilterCriteria) -> Callable[[Permit], bool]:
    cutoff = criteria.cutoff()

    def keep(permit: Permit) -> bool:
        reference = permit.reference_date
        if reference is None:
            return False
        if cutoff is not None and reference < cutoff:
            return False
        if criteria.date_from is not None and reference.date() < criteria.date_from:
            return False
        if criteria.date_to is not None and reference.date() > criteria.date_to:
            return False
        return True

    return keep


def _type_predicate(criteria: FilterCriteria) -> Callable[[Permit], bool]:
    wanted = PermitType(criteria.permit_type)
    return lambda permit: permit.permit_type is wanted


def _season_predicate(criteria: FilterCriteria) -> Callable[[Permit], bool]:
    summer = criteria.season == "summer"

    def keep(permit: Permit) -> bool:
        if permit.start_date is None:
            return False
        return is_summer(permit.start_date.month) == summer

    return keep


def predicates_for(criteria: FilterCriteria) -> list[Callable[[Permit], bool]]:
    """Per-permit predicates in application order: dates, type, then season."""
    predicates = []
    if criteria.has_date_filter:
        predicates.append(_date_predicate(criteria))
    if criteria.permit_type != "all":
        predicates.append(_type_predicate(criteria))
    if criteria.season != "all":
        predicates.append(_season_predicate(criteria))
    return predicates


def select_permits(permits: Iterable[Permit], criteria: FilterCriteria) -> list[Permit]:
    """Apply every active permit-level filter, preserving input order."""
    predicates = predicates_for(criteria)
    return [permit for permit in permits if all(check(permit) for check in predicates)]


def filter_subset(
    groups: Iterable[MemberGroup],
    criteria: FilterCriteria | None = None,
    *,
    short_permit_days: int = SHORT_PERMIT_DAYS,
) -> list[MemberView]:
    """Derive filtered member views sorted by filtered permit total, largest first.

    Members left without permits are dropped before the ``min_count`` threshold
    and the member-name search are applied.
    """
    criteria = criteria or FilterCriteria()
    views: list[MemberView] = []
    for group in groups:
        subset = select_permits(group.permits, criteria)
        if not subset:
            continue
        view = build_view(group.member, subset, short_permit_days=short_permit_days)
        if view.total < criteria.min_count:
            continue
        if criteria.name_search and criteria.name_search not in group.member.lower():
            continue
        views.append(view)
    views.sort(key=lambda view: view.total, reverse=True)
    logger.debug(
        "filters.applied",
        members=len(views),
        season=criteria.season,
        permit_type=criteria.permit_type,
        dated=criteria.has_date_filter,
    )
    return views


def member_views(
    groups: Iterable[MemberGroup],
    *,
    short_permit_days: int = SHORT_PERMIT_DAYS,
) -> list[MemberView]:
    """Unfiltered views of every group, largest first."""
    return filter_subset(groups, FilterCriteria(), short_permit_days=short_permit_days)


__all__ = [
    "FilterCriteria",
    "MemberView",
    "PERMIT_TYPES",
    "SEASONS",
    "build_view",
    "filter_subset",
    "member_views",
    "predicates_for",
    "select_permits",
]
