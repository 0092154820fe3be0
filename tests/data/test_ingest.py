"""Tests for the ingestion pipeline."""

from datetime import datetime

import pytest

from permit_audit.data import Dialect, FatalParseError, PermitType, detect_dialect, ingest_file, ingest_text
from permit_audit.policy import AnalysisPolicy


def test_ingest_header_dialect(header_text):
    result = ingest_text(header_text)

    assert result.dialect is Dialect.HEADER
    assert result.total_lines == 7
    assert result.valid_count == 3
    assert [permit.plate for permit in result.records] == ["ABC123", "XYZ789", "DEF456"]
    assert [permit.member for permit in result.records] == ["Juan Pérez", "Ana Gómez", "Ana Gómez"]
    assert result.records[1].note == "quoted, note"
    assert result.records[2].permit_type is PermitType.PERMANENT
    assert [(error.line, error.reason) for error in result.errors] == [
        (5, "Empty plate"),
        (6, "No valid date (start='31/02/2024', end='nope')"),
        (7, "Wrong number of columns (expected 6, found 2)"),
    ]
    assert result.error_rate == 50.0


def test_ingest_headerless_dialect(headerless_text):
    result = ingest_text(headerless_text, now=datetime(2024, 9, 1))

    assert result.dialect is Dialect.HEADERLESS
    assert result.valid_count == 2
    first, second = result.records
    assert first.plate == "1234-ABC"
    assert first.member == "12-Juan Perez"
    assert first.registrar == "admin"
    assert first.start_date == datetime(2024, 7, 1, 10, 0, 0)
    assert first.permit_type is PermitType.TEMPORARY
    assert second.member == "34-Maria Lopez"
    assert second.permit_type is PermitType.PERMANENT
    assert [(error.line, error.reason) for error in result.errors] == [
        (3, "Empty plate"),
        (4, "Could not extract member information"),
        (5, "Wrong number of columns (minimum 3, found 2)"),
    ]


def test_detect_dialect(header_text, headerless_text):
    assert detect_dialect(header_text) is Dialect.HEADER
    assert detect_dialect(headerless_text) is Dialect.HEADERLESS
    assert detect_dialect("") is Dialect.HEADER


def test_explicit_dialect_overrides_detection(header_text):
    with pytest.raises(FatalParseError, match="No valid permit records"):
        ingest_text(header_text, dialect="headerless")


@pytest.mark.parametrize("text", ["", "   \n\n  "])
def test_empty_input_is_fatal(text):
    with pytest.raises(FatalParseError, match="empty"):
        ingest_text(text)


def test_unresolvable_header_is_fatal():
    with pytest.raises(FatalParseError, match="Could not find required columns in header: end_date"):
        ingest_text("Plate,Start,Member\nABC,01/01/2024,Ana\n")


def test_no_valid_rows_is_fatal():
    text = "Plate,Start,End,Member\nABC,,,Juan\n,01/01/2024,02/01/2024,Ana\n"
    with pytest.raises(FatalParseError, match=r"No valid permit records could be read \(2 rows rejected\)"):
        ingest_text(text)


def test_header_only_is_fatal():
    with pytest.raises(FatalParseError, match=r"\(0 rows rejected\)"):
        ingest_text("Plate,Start,End,Member\n")


def test_policy_threshold_changes_classification(header_text):
    result = ingest_text(header_text, policy=AnalysisPolicy(temporary_max_days=5))
    assert result.records[0].permit_type is PermitType.PERMANENT
    assert result.records[1].permit_type is PermitType.TEMPORARY


def test_ingest_file_strips_bom(tmp_path, header_text):
    path = tmp_path / "permits.csv"
    path.write_text(header_text, encoding="utf-8-sig")
    result = ingest_file(path)
    assert result.valid_count == 3
    assert result.dialect is Dialect.HEADER


def test_ingest_file_passes_clock(tmp_path, mocker):
    path = tmp_path / "permits.txt"
    path.write_text("P1;7-Ana;;\n", encoding="utf-8")
    clock = mocker.Mock(return_value=datetime(2024, 2, 2))
    result = ingest_file(path, now=clock)
    assert result.records[0].start_date == datetime(2024, 2, 2)
    clock.assert_called_once_with()
