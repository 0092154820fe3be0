"""Unit tests for the per-dialect record builders."""

from datetime import datetime

import pytest

from permit_audit.data.builder import (
    HeaderlessRecordBuilder,
    HeaderRecordBuilder,
    extract_member_from_note,
    extract_member_info,
    match_columns,
    normalize_member,
    normalize_plate,
    resolve_columns,
)
from permit_audit.data.models import ColumnRole, Dialect, FatalParseError, PermitType, RecordError, TabularRow

HEADER = ("Plate", "Start date", "End date", "Member name", "Registered by user", "Notes")


@pytest.fixture
def header_builder():
    return HeaderRecordBuilder(mapping=resolve_columns(HEADER))


def _row(*fields, line=2):
    return TabularRow(line=line, fields=fields)


def test_normalize_plate():
    assert normalize_plate(" ab 12-c ") == "AB12C"
    assert normalize_plate(" ab 12-c ", strict=False) == "AB12-C"
    assert normalize_plate("--") == ""


def test_normalize_member():
    assert normalize_member("  jUAN   carlos  PÉREZ ") == "Juan Carlos Pérez"
    assert normalize_member("") == ""


def test_extract_member_from_note():
    assert extract_member_from_note("guest of 123-Ana Gómez [car]") == "123-Ana Gómez"
    assert extract_member_from_note("  no number here ") == "no number here"
    assert extract_member_from_note("") == ""


def test_extract_member_info_from_structured_annotation():
    info = extract_member_info('"{"note":"Socio 42-Luis Vega","user":"desk"}"')
    assert info.member == "42-Luis Vega"
    assert info.registrar == "desk"
    assert info.note == "Socio 42-Luis Vega"


def test_extract_member_info_falls_back_to_raw_text():
    info = extract_member_info('"{not json}"')
    assert info.member == '"{not json}"'
    assert info.registrar == ""
    assert extract_member_info("").member == ""


def test_match_columns_claims_each_column_once():
    mapping = match_columns(["Nombre", "Matrícula", "Desde", "Hasta"])
    assert mapping.positions == {
        ColumnRole.PLATE: 1,
        ColumnRole.START_DATE: 2,
        ColumnRole.END_DATE: 3,
        ColumnRole.MEMBER: 0,
    }
    assert mapping.missing() == []


def test_match_columns_ignores_member_fragment_in_username():
    mapping = match_columns(["Username", "Plate", "Start", "End", "Member"])
    assert mapping.positions[ColumnRole.MEMBER] == 4
    assert mapping.positions[ColumnRole.REGISTRAR] == 0


def test_resolve_columns_reports_missing_roles():
    with pytest.raises(FatalParseError, match="end_date, member"):
        resolve_columns(["Plate", "Start"])


def test_header_builder_builds_permit(header_builder):
    permit = header_builder.build(_row("ab-123", "01/01/2024", "10/01/2024", "juan pérez", "desk", "n"))
    assert permit.plate == "AB123"
    assert permit.member == "Juan Pérez"
    assert permit.start_date == datetime(2024, 1, 1)
    assert permit.end_date == datetime(2024, 1, 10)
    assert permit.registrar == "desk"
    assert permit.note == "n"
    assert permit.permit_type is PermitType.TEMPORARY
    assert permit.source_line == 2
    assert permit.dialect is Dialect.HEADER


@pytest.mark.parametrize(
    ("fields", "reason"),
    [
        (("", "", "", "", "", ""), "Empty plate"),
        (("  ", "01/01/2024", "", "", "", ""), "Empty plate"),
        (("A1", "01/01/2024", "", "  ", "", ""), "Missing member name"),
        (("A1", "bad", "worse", "Ana", "", ""), "No valid date (start='bad', end='worse')"),
    ],
)
def test_header_builder_rejection_order(header_builder, fields, reason):
    outcome = header_builder.build(_row(*fields, line=7))
    assert isinstance(outcome, RecordError)
    assert outcome.reason == reason
    assert outcome.line == 7
    assert outcome.raw_fields == fields


def test_header_builder_keeps_row_with_one_valid_date(header_builder):
    permit = header_builder.build(_row("A1", "garbage", "10/01/2024", "Ana", "", ""))
    assert permit.start_date is None
    assert permit.end_date == datetime(2024, 1, 10)
    assert permit.permit_type is PermitType.TEMPORARY


def test_header_builder_uses_configured_threshold():
    builder = HeaderRecordBuilder(mapping=resolve_columns(HEADER), temporary_max_days=5)
    permit = builder.build(_row("A1", "01/01/2024", "10/01/2024", "Ana", "", ""))
    assert permit.permit_type is PermitType.PERMANENT


def test_headerless_builder_extracts_annotation():
    builder = HeaderlessRecordBuilder()
    annotation = '"{"note":"12-Juan Perez","user":"admin"}"'
    permit = builder.build(_row("12 ab-c", annotation, "01/07/2024 10:00:00GMT", "05/07/2024", line=1))
    assert permit.plate == "12AB-C"
    assert permit.member == "12-Juan Perez"
    assert permit.registrar == "admin"
    assert permit.raw_annotation == annotation
    assert permit.start_date == datetime(2024, 7, 1, 10, 0, 0)
    assert permit.end_date == datetime(2024, 7, 5)
    assert permit.dialect is Dialect.HEADERLESS


def test_headerless_builder_defaults_missing_start_to_clock():
    now = datetime(2024, 5, 1, 12, 0)
    builder = HeaderlessRecordBuilder(clock=lambda: now)
    permit = builder.build(_row("P1", "7-Ana", "", ""))
    assert permit.start_date == now
    assert permit.end_date is None
    assert permit.permit_type is PermitType.PERMANENT


def test_headerless_builder_classifies_before_defaulting_start():
    now = datetime(2026, 1, 1)
    builder = HeaderlessRecordBuilder(clock=lambda: now)
    permit = builder.build(_row("ABC123", "123-Perez, Juan", "", "01/01/2030 10:00:00GMT"))
    assert permit.start_date == now
    assert permit.end_date == datetime(2030, 1, 1, 10, 0, 0)
    assert permit.permit_type is PermitType.TEMPORARY


@pytest.mark.parametrize(
    ("fields", "reason"),
    [
        (("", "7-Ana", "01/01/2024"), "Empty plate"),
        (("P1", "", "01/01/2024"), "Could not extract member information"),
    ],
)
def test_headerless_builder_rejections(fields, reason):
    outcome = HeaderlessRecordBuilder().build(_row(*fields))
    assert isinstance(outcome, RecordError)
    assert outcome.reason == reason
