"""Group permits by member and accumulate dataset-wide statistics."""

from collections import Counter
from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta

import structlog
from attrs import define, field

from ..data.models import Permit, PermitType
from ..policy import is_summer
from .intervals import round_half_up

logger = structlog.get_logger(__name__)

TOP_MEMBERS = 10

PERIODS: tuple[str, ...] = ("day", "week", "month", "year")


def member_key(member: str) -> str:
    """Return the grouping key for a member name."""
    return member.strip().lower()


def month_key(value: datetime) -> str:
    """Return a ``YYYY-MM`` label for ``value``."""
    return f"{value.year}-{value.month:02d}"


@define(slots=True)
class MemberGroup:
    """All permits attributed to one member, in input order."""

    member: str
    permits: list[Permit] = field(factory=list)
    last_registered: datetime | None = None

    @property
    def total(self) -> int:
        """Number of permits in the group."""
        return len(self.permits)

    @property
    def temporary(self) -> int:
        """Number of temporary permits."""
        return sum(1 for permit in self.permits if permit.permit_type is PermitType.TEMPORARY)

    @property
    def permanent(self) -> int:
        """Number of permanent permits."""
        return self.total - self.temporary

    @property
    def plates(self) -> list[str]:
        """Distinct plates in first-seen order."""
        return list(dict.fromkeys(permit.plate for permit in self.permits))

    def add(self, permit: Permit) -> None:
        """Append a permit and advance the latest registration date."""
        self.permits.append(permit)
        start = permit.start_date
        if start is not None and (self.last_registered is None or start > self.last_registered):
            self.last_registered = start


@define(slots=True, frozen=True)
class DailyRegistrations:
    """Average permits registered per active day, overall and per season."""

    overall: float = 0.0
    summer: float = 0.0
    winter: float = 0.0


@define(slots=True)
class DatasetStats:
    """Running totals gathered while grouping."""

    total_permits: int = 0
    total_members: int = 0
    temporary: int = 0
    permanent: int = 0
    start_min: datetime | None = None
    start_max: datetime | None = None
    end_min: datetime | None = None
    end_max: datetime | None = None
    per_month: dict[str, int] = field(factory=dict)
    per_registrar: dict[str, int] = field(factory=dict)
    top_members: list[MemberGroup] = field(factory=list)
    daily: DailyRegistrations = field(factory=DailyRegistrations)

    def observe(self, permit: Permit) -> None:
        """Fold one permit into the running totals."""
        self.total_permits += 1
        if permit.permit_type is PermitType.TEMPORARY:
            self.temporary += 1
        else:
            self.permanent += 1
        start, end = permit.start_date, permit.end_date
        if start is not None:
            self.start_min = start if self.start_min is None else min(self.start_min, start)
            self.start_max = start if self.start_max is None else max(self.start_max, start)
            key = month_key(start)
            self.per_month[key] = self.per_month.get(key, 0) + 1
        if end is not None:
            self.end_min = end if self.end_min is None else min(self.end_min, end)
            self.end_max = end if self.end_max is None else max(self.end_max, end)
        if permit.registrar:
            self.per_registrar[permit.registrar] = self.per_registrar.get(permit.registrar, 0) + 1

    def monthly_totals(self) -> list[tuple[str, int]]:
        """Per-month totals in chronological order."""
        return sorted(self.per_month.items())

    def registrar_totals(self) -> list[tuple[str, int]]:
        """Per-registrar totals, busiest first."""
        return sorted(self.per_registrar.items(), key=lambda item: item[1], reverse=True)


@define(slots=True)
class GroupedPermits:
    """Member groups keyed by normalized member name plus dataset statistics."""

    groups: dict[str, MemberGroup] = field(factory=dict)
    stats: DatasetStats = field(factory=DatasetStats)

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[MemberGroup]:
        return iter(self.groups.values())

    def get(self, member: str) -> MemberGroup | None:
        """Look up a group by (any casing of) its member name."""
        return self.groups.get(member_key(member))

    def permits(self) -> list[Permit]:
        """Flatten the groups back into a single permit list."""
        return [permit for group in self.groups.values() for permit in group.permits]

    def by_name(self) -> list[MemberGroup]:
        """Groups sorted alphabetically, ignoring case."""
        return sorted(self.groups.values(), key=lambda group: group.member.casefold())

    def by_total(self) -> list[MemberGroup]:
        """Groups sorted by permit total, largest first; ties keep insertion order."""
        return sorted(self.groups.values(), key=lambda group: group.total, reverse=True)


def daily_registrations(permits: Iterable[Permit]) -> DailyRegistrations:
    """Average permits per day that saw registrations, split by season."""
    per_day: Counter = Counter(
        permit.start_date.date() for permit in permits if permit.start_date is not None
    )
    if not per_day:
        return DailyRegistrations()
    summer = [count for day, count in per_day.items() if is_summer(day.month)]
    winter = [count for day, count in per_day.items() if not is_summer(day.month)]
    return DailyRegistrations(
        overall=round_half_up(sum(per_day.values()) / len(per_day), 1),
        summer=round_half_up(sum(summer) / len(summer), 1) if summer else 0.0,
        winter=round_half_up(sum(winter) / len(winter), 1) if winter else 0.0,
    )


def group_permits(permits: Iterable[Permit]) -> GroupedPermits:
    """Partition permits by normalized member, keeping the first-seen display name."""
    grouped = GroupedPermits()
    for permit in permits:
        key = member_key(permit.member)
        group = grouped.groups.get(key)
        if group is None:
            group = MemberGroup(member=permit.member)
            grouped.groups[key] = group
        group.add(permit)
        grouped.stats.observe(permit)

    stats = grouped.stats
    stats.total_members = len(grouped.groups)
    stats.top_members = grouped.by_total()[:TOP_MEMBERS]
    stats.daily = daily_registrations(grouped.permits())
    logger.info("grouping.complete", members=stats.total_members, permits=stats.total_permits)
    return grouped


@define(slots=True, frozen=True)
class PeriodStats:
    """Totals for one calendar bucket."""

    period: str
    total: int
    temporary: int
    permanent: int
    unique_members: int


def period_key(value: datetime, period: str) -> str:
    """Label ``value`` with its day, week (starting Sunday), month or year bucket."""
    if period == "day":
        return value.date().isoformat()
    if period == "week":
        # isoweekday: Monday=1 .. Sunday=7
        week_start = value.date() - timedelta(days=value.isoweekday() % 7)
        return week_start.isoformat()
    if period == "month":
        return month_key(value)
    if period == "year":
        return str(value.year)
    valid = ", ".join(PERIODS)
    raise ValueError(f"Unsupported period {period!r}. Choose one of: {valid}.")


def stats_by_period(permits: Iterable[Permit], period: str = "month") -> list[PeriodStats]:
    """Aggregate permits into calendar buckets keyed by their start date."""
    if period not in PERIODS:
        valid = ", ".join(PERIODS)
        raise ValueError(f"Unsupported period {period!r}. Choose one of: {valid}.")
    buckets: dict[str, list[Permit]] = {}
    for permit in permits:
        if permit.start_date is None:
            continue
        buckets.setdefault(period_key(permit.start_date, period), []).append(permit)
    result = []
    for key in sorted(buckets):
        members = buckets[key]
        temporary = sum(1 for permit in members if permit.is_temporary)
        result.append(
            PeriodStats(
                period=key,
                total=len(members),
                temporary=temporary,
                permanent=len(members) - temporary,
                unique_members=len({member_key(permit.member) for permit in members}),
            )
        )
    return result


@define(slots=True, frozen=True)
class DuplicatePlate:
    """A plate registered on behalf of more than one member."""

    plate: str
    permits: tuple[Permit, ...]
    members: tuple[str, ...]


def find_duplicate_plates(permits: Iterable[Permit]) -> list[DuplicatePlate]:
    """Return plates shared by several members, sorted by plate."""
    by_plate: dict[str, list[Permit]] = {}
    for permit in permits:
        by_plate.setdefault(permit.plate.lower(), []).append(permit)
    duplicates = []
    for records in by_plate.values():
        members: dict[str, str] = {}
        for permit in records:
            members.setdefault(member_key(permit.member), permit.member)
        if len(members) > 1:
            duplicates.append(
                DuplicatePlate(plate=records[0].plate, permits=tuple(records), members=tuple(members.values()))
            )
    return sorted(duplicates, key=lambda duplicate: duplicate.plate)


def search_groups(grouped: GroupedPermits, text: str) -> list[MemberGroup]:
    """Groups whose name, plates or notes contain ``text``, sorted by name."""
    needle = text.strip().lower()
    if not needle:
        return grouped.by_name()
    return [
        group
        for group in grouped.by_name()
        if needle in group.member.lower()
        or any(needle in permit.plate.lower() or needle in permit.note.lower() for permit in group.permits)
    ]


__all__ = [
    "DailyRegistrations",
    "DatasetStats",
    "DuplicatePlate",
    "GroupedPermits",
    "MemberGroup",
    "PERIODS",
    "PeriodStats",
    "daily_registrations",
    "find_duplicate_plates",
    "group_permits",
    "member_key",
    "month_key",
    "period_key",
    "search_groups",
    "stats_by_period",
]
