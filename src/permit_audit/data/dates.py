"""Date parsing for permit files with mixed day-first and year-first layouts."""

from datetime import datetime

from dateutil import parser as dateutil_parser

from .formats import DATE_PATTERNS, FALLBACK_YEAR, TIMESTAMP_PATTERN


def _build(year: int, month: int, day: int, *time_parts: int) -> datetime | None:
    """Return the datetime only if its calendar fields survive unchanged."""
    try:
        value = datetime(year, month, day, *time_parts)
    except ValueError:
        return None
    # Guard against any normalization of overflowing day/month values.
    if (value.year, value.month, value.day) != (year, month, day):
        return None
    return value


def _parse_timestamp(cleaned: str) -> datetime | None:
    match = TIMESTAMP_PATTERN.match(cleaned)
    if not match:
        return None
    day, month, year, hour, minute, second = (int(part) for part in match.groups()[:6])
    return _build(year, month, day, hour, minute, second)


def _parse_numeric(cleaned: str) -> datetime | None:
    for pattern in DATE_PATTERNS:
        match = pattern.regex.match(cleaned)
        if not match:
            continue
        first, second, third = (int(part) for part in match.groups())
        if pattern.year_first:
            parsed = _build(first, second, third)
        else:
            parsed = _build(third, second, first)
        if parsed is not None:
            return parsed
    return None


def _parse_fallback(cleaned: str) -> datetime | None:
    if not FALLBACK_YEAR.search(cleaned):
        return None
    try:
        parsed = dateutil_parser.parse(cleaned, dayfirst=True)
    except (ValueError, OverflowError):
        return None
    return parsed.replace(tzinfo=None)


def parse_date(value: str | None, *, allow_timestamp: bool = False) -> datetime | None:
    """Parse a permit date, returning ``None`` when no layout matches.

    Layouts are tried in a fixed order: the zone-tagged timestamp
    (``DD/MM/YYYY HH:MM:SSGMT``, only when ``allow_timestamp``), ``DD/MM/YYYY``,
    ``DD-MM-YYYY``, ``YYYY/MM/DD``, ``YYYY-MM-DD`` and finally a free-form parse
    that reads ambiguous numeric dates day first.
    """
    if not value:
        return None
    cleaned = value.strip().strip('"').strip()
    if not cleaned:
        return None
    if allow_timestamp and TIMESTAMP_PATTERN.match(cleaned):
        # Impossible components in a recognized timestamp never reach the fallback.
        return _parse_timestamp(cleaned)
    parsed = _parse_numeric(cleaned)
    if parsed is not None:
        return parsed
    if any(p.regex.match(cleaned) for p in DATE_PATTERNS):
        # Numeric layout with impossible components.
        return None
    return _parse_fallback(cleaned)


__all__ = ["parse_date"]
