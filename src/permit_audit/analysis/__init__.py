"""Grouping, interval analytics, filtering and anomaly screening."""

from .anomalies import FlaggedMember, SuspicionCriteria, find_suspicious  # noqa: F401
from .filters import FilterCriteria, MemberView, filter_subset, member_views
from .grouping import (
    DatasetStats,
    DuplicatePlate,
    GroupedPermits,
    MemberGroup,
    PeriodStats,
    find_duplicate_plates,
    group_permits,
    search_groups,
    stats_by_period,
)
from .intervals import (
    PeakResult,
    SeasonalFrequency,
    average_duration,
    monthly_frequency,
    overlap_count,
    peak_simultaneous,
    seasonal_frequency,
    short_permit_count,
)

__all__ = [
    "DatasetStats",
    "DuplicatePlate",
    "FilterCriteria",
    "FlaggedMember",
    "GroupedPermits",
    "MemberGroup",
    "MemberView",
    "PeakResult",
    "PeriodStats",
    "SeasonalFrequency",
    "SuspicionCriteria",
    "average_duration",
    "filter_subset",
    "find_duplicate_plates",
    "find_suspicious",
    "group_permits",
    "member_views",
    "monthly_frequency",
    "overlap_count",
    "peak_simultaneous",
    "search_groups",
    "seasonal_frequency",
    "short_permit_count",
    "stats_by_period",
]
