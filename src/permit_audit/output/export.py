"""Flatten analysis results into CSV rows and JSON-friendly payloads."""

from collections.abc import Iterable, Sequence
from pathlib import Path

import structlog

from ..analysis.anomalies import FlaggedMember
from ..analysis.filters import MemberView
from ..analysis.grouping import DatasetStats, DuplicatePlate, GroupedPermits, PeriodStats
from ..analysis.intervals import monthly_frequency
from ..data.models import IngestionResult, Permit, RecordErrorSchema
from .utils import ensure_directory, format_date, format_optional

logger = structlog.get_logger(__name__)

EXPORT_COLUMNS = ("member", "plate", "type", "start", "end", "registrar", "note")
SUMMARY_FIELDS = ("dialect", "total_lines", "valid_count", "rejected_count", "error_rate")


def permit_row(member: str, permit: Permit) -> dict[str, str]:
    """Render one permit as an export row."""
    return {
        "member": member,
        "plate": permit.plate,
        "type": permit.permit_type.value,
        "start": format_date(permit.start_date),
        "end": format_date(permit.end_date),
        "registrar": format_optional(permit.registrar),
        "note": format_optional(permit.note),
    }


def permit_rows(views: Iterable[MemberView]) -> list[dict[str, str]]:
    """One row per permit of every view, in view order."""
    return [permit_row(view.member, permit) for view in views for permit in view.permits]


def write_permits_csv(views: Iterable[MemberView], path: str | Path) -> int:
    """Write the permits behind ``views`` to ``path`` and return the row count."""
    import pandas as pd  # type: ignore

    target = Path(path)
    ensure_directory(target.parent)
    rows = permit_rows(views)
    df = pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))
    df.to_csv(target, index=False)
    logger.info("export.csv_written", path=str(target), rows=len(rows))
    return len(rows)


def view_to_dict(view: MemberView) -> dict[str, object]:
    """Summarize a member view without its permit list."""
    return {
        "member": view.member,
        "total": view.total,
        "temporary": view.temporary,
        "permanent": view.permanent,
        "plates": view.plate_count,
        "average_duration": view.average_duration,
        "monthly_frequency": monthly_frequency(view.permits),
        "summer_frequency": view.seasonal.summer,
        "winter_frequency": view.seasonal.winter,
        "short_permits": view.short_permits,
        "overlaps": view.overlaps,
        "peak": {
            "count": view.peak.count,
            "date": format_date(view.peak.at_date),
            "plates": list(view.peak.active_plates),
        },
        "last_registered": format_date(view.last_registered),
    }


def flagged_to_dict(flagged: FlaggedMember) -> dict[str, object]:
    """Summarize a flagged member."""
    return {
        "member": flagged.member,
        "plates": flagged.plate_count,
        "severity": flagged.severity,
        "issues": list(flagged.issues),
        "permits": len(flagged.permits),
    }


def duplicate_to_dict(duplicate: DuplicatePlate) -> dict[str, object]:
    return {
        "plate": duplicate.plate,
        "members": list(duplicate.members),
        "permits": len(duplicate.permits),
    }


def period_to_dict(stats: PeriodStats) -> dict[str, object]:
    return {
        "period": stats.period,
        "total": stats.total,
        "temporary": stats.temporary,
        "permanent": stats.permanent,
        "unique_members": stats.unique_members,
    }


def stats_to_dict(stats: DatasetStats) -> dict[str, object]:
    """Convert dataset statistics into JSON-friendly primitives."""
    return {
        "total_permits": stats.total_permits,
        "total_members": stats.total_members,
        "temporary": stats.temporary,
        "permanent": stats.permanent,
        "start_range": [format_date(stats.start_min), format_date(stats.start_max)],
        "end_range": [format_date(stats.end_min), format_date(stats.end_max)],
        "per_month": dict(stats.monthly_totals()),
        "per_registrar": dict(stats.registrar_totals()),
        "top_members": [{"member": group.member, "total": group.total} for group in stats.top_members],
        "daily_registrations": {
            "overall": stats.daily.overall,
            "summer": stats.daily.summer,
            "winter": stats.daily.winter,
        },
    }


def summary_payload(result: IngestionResult, grouped: GroupedPermits) -> dict[str, object]:
    """Ingestion counts plus the grouped dataset statistics."""
    payload = result.to_dict(only=SUMMARY_FIELDS)
    payload["stats"] = stats_to_dict(grouped.stats)
    return payload


def errors_payload(result: IngestionResult) -> list[dict[str, object]]:
    return RecordErrorSchema(many=True).dump(result.errors)


def views_payload(views: Sequence[MemberView]) -> list[dict[str, object]]:
    return [view_to_dict(view) for view in views]


__all__ = [
    "EXPORT_COLUMNS",
    "SUMMARY_FIELDS",
    "duplicate_to_dict",
    "errors_payload",
    "flagged_to_dict",
    "period_to_dict",
    "permit_row",
    "permit_rows",
    "stats_to_dict",
    "summary_payload",
    "view_to_dict",
    "views_payload",
    "write_permits_csv",
]
