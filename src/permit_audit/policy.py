"""Policy constants shared by the record builders and the analytics."""

from datetime import datetime

from attrs import define, field, validators

# Permits spanning more days than this are treated as permanent grants.
TEMPORARY_MAX_DAYS = 365
SHORT_PERMIT_DAYS = 7

SUMMER_FIRST_MONTH = 6
SUMMER_LAST_MONTH = 9

# Stand-in end date for open-ended permits in interval comparisons.
OPEN_ENDED_SENTINEL = datetime(2999, 12, 31)


def is_summer(month: int) -> bool:
    """Return True when ``month`` (1-12) falls in the summer season."""
    return SUMMER_FIRST_MONTH <= month <= SUMMER_LAST_MONTH


def _positive(instance: object, attribute: object, value: int) -> None:
    if value <= 0:
        raise ValueError(f"{attribute.name} must be a positive number of days, got {value}.")  # type: ignore[attr-defined]


@define(slots=True, frozen=True)
class AnalysisPolicy:
    """Thresholds that classify and score permits."""

    temporary_max_days: int = field(
        default=TEMPORARY_MAX_DAYS, converter=int, validator=[validators.instance_of(int), _positive]
    )
    short_permit_days: int = field(
        default=SHORT_PERMIT_DAYS, converter=int, validator=[validators.instance_of(int), _positive]
    )


__all__ = [
    "AnalysisPolicy",
    "OPEN_ENDED_SENTINEL",
    "SHORT_PERMIT_DAYS",
    "SUMMER_FIRST_MONTH",
    "SUMMER_LAST_MONTH",
    "TEMPORARY_MAX_DAYS",
    "is_summer",
]
