"""Tests for CSV and JSON exports."""

from datetime import datetime

from permit_audit.analysis.filters import member_views
from permit_audit.analysis.grouping import group_permits
from permit_audit.data import ingest_text
from permit_audit.output.export import (
    EXPORT_COLUMNS,
    errors_payload,
    permit_row,
    permit_rows,
    summary_payload,
    view_to_dict,
    write_permits_csv,
)
from permit_audit.output.utils import ensure_directory, format_date


def test_format_date():
    assert format_date(datetime(2024, 7, 1, 10, 0)) == "01/07/2024"
    assert format_date(None) == "N/A"


def test_ensure_directory(tmp_path):
    target = tmp_path / "a" / "b"
    assert ensure_directory(target) == target
    assert target.is_dir()


def test_permit_row_marks_missing_values(make_permit):
    row = permit_row("Ana", make_permit("P1", "Ana", start="2024-07-01"))
    assert row == {
        "member": "Ana",
        "plate": "P1",
        "type": "permanent",
        "start": "01/07/2024",
        "end": "N/A",
        "registrar": "N/A",
        "note": "N/A",
    }


def test_write_permits_csv(tmp_path, header_text):
    views = member_views(group_permits(ingest_text(header_text).records))
    path = tmp_path / "exports" / "members.csv"

    assert write_permits_csv(views, path) == 3
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == ",".join(EXPORT_COLUMNS)
    assert lines[1] == 'Ana Gómez,XYZ789,temporary,01/07/2024,05/07/2024,admin,"quoted, note"'
    assert lines[2] == "Ana Gómez,DEF456,permanent,01/07/2024,N/A,N/A,N/A"
    assert len(permit_rows(views)) == 3


def test_write_permits_csv_without_views(tmp_path):
    path = tmp_path / "empty.csv"
    assert write_permits_csv([], path) == 0
    assert path.read_text(encoding="utf-8").strip() == ",".join(EXPORT_COLUMNS)


def test_view_to_dict(header_text):
    view = member_views(group_permits(ingest_text(header_text).records))[0]
    payload = view_to_dict(view)
    assert payload["member"] == "Ana Gómez"
    assert payload["total"] == 2
    assert payload["plates"] == 2
    assert payload["overlaps"] == 1
    assert payload["peak"] == {"count": 1, "date": "01/07/2024", "plates": ["XYZ789"]}
    assert payload["monthly_frequency"] == 2.0


def test_summary_payload(header_text):
    result = ingest_text(header_text)
    payload = summary_payload(result, group_permits(result.records))
    assert payload["valid_records"] == 3
    assert payload["rejected_rows"] == 3
    assert payload["error_rate"] == 50.0
    assert payload["stats"]["total_members"] == 2
    assert payload["stats"]["start_range"] == ["01/01/2024", "01/07/2024"]
    assert payload["stats"]["per_registrar"] == {"admin": 2}
    assert set(payload) == {"dialect", "total_lines", "valid_records", "rejected_rows", "error_rate", "stats"}


def test_errors_payload(header_text):
    payload = errors_payload(ingest_text(header_text))
    assert [(entry["line"], entry["reason"]) for entry in payload] == [
        (5, "Empty plate"),
        (6, "No valid date (start='31/02/2024', end='nope')"),
        (7, "Wrong number of columns (expected 6, found 2)"),
    ]
    assert payload[2]["raw_fields"] == ["BAD", "ROW"]
