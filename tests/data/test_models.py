"""Unit tests for the data models."""

from datetime import datetime, timedelta

import pytest

from permit_audit.data.models import (
    Dialect,
    IngestionResult,
    IngestionResultSchema,
    Permit,
    PermitSchema,
    PermitType,
    RecordError,
    classify_permit,
)
from permit_audit.policy import AnalysisPolicy

JULY = datetime(2024, 7, 1)


def test_classify_long_span_as_permanent():
    assert classify_permit(JULY, JULY + timedelta(days=400)) is PermitType.PERMANENT


def test_classify_short_span_as_temporary():
    assert classify_permit(JULY, JULY + timedelta(days=5)) is PermitType.TEMPORARY


def test_classify_boundaries():
    assert classify_permit(JULY, JULY + timedelta(days=365)) is PermitType.TEMPORARY
    assert classify_permit(JULY, JULY + timedelta(days=365, hours=1)) is PermitType.PERMANENT
    assert classify_permit(JULY, None) is PermitType.PERMANENT
    assert classify_permit(None, JULY) is PermitType.TEMPORARY
    assert classify_permit(JULY, JULY - timedelta(days=3)) is PermitType.TEMPORARY


def test_permit_converters_and_properties():
    permit = Permit(plate=" ABC1 ", member=" Ana ", end_date=JULY, permit_type="temporary")
    assert permit.plate == "ABC1"
    assert permit.member == "Ana"
    assert permit.is_temporary
    assert not permit.has_both_dates
    assert permit.reference_date == JULY
    assert permit.dialect is Dialect.HEADER


def test_permits_are_hashable_values():
    first = Permit(plate="A", member="B", start_date=JULY)
    second = Permit(plate="A", member="B", start_date=JULY)
    assert first == second
    assert len({first, second}) == 1


def test_error_rate():
    records = [Permit(plate="A", member="B", start_date=JULY)] * 3
    errors = [RecordError(line=2, reason="Empty plate")]
    result = IngestionResult(records=records, errors=errors, total_lines=5)
    assert result.valid_count == 3
    assert result.error_rate == 25.0
    assert IngestionResult().error_rate == 0.0


def test_to_dict_serializes_snapshot():
    permit = Permit(
        plate="A1",
        member="Ana",
        start_date=JULY,
        end_date=JULY + timedelta(days=2),
        permit_type=PermitType.TEMPORARY,
        source_line=2,
    )
    result = IngestionResult(
        records=[permit],
        errors=[RecordError(line=3, reason="Empty plate", raw_fields=("", "x"))],
        total_lines=3,
    )
    payload = result.to_dict()
    assert payload["valid_records"] == 1
    assert payload["rejected_rows"] == 1
    assert payload["error_rate"] == 50.0
    assert payload["dialect"] == "header"
    assert payload["records"][0]["permit_type"] == "temporary"
    assert payload["records"][0]["start_date"].startswith("2024-07-01")
    assert payload["errors"][0] == {"line": 3, "reason": "Empty plate", "raw_fields": ["", "x"]}


def test_permit_schema_loads_permit():
    permit = PermitSchema().load(
        {
            "plate": "A1",
            "member": "Ana",
            "start_date": "2024-07-01T00:00:00",
            "end_date": None,
            "permit_type": "permanent",
            "dialect": "headerless",
        }
    )
    assert isinstance(permit, Permit)
    assert permit.start_date == JULY
    assert permit.dialect is Dialect.HEADERLESS


@pytest.mark.parametrize("field", ["temporary_max_days", "short_permit_days"])
def test_policy_rejects_non_positive_thresholds(field):
    with pytest.raises(ValueError, match="must be a positive number of days"):
        AnalysisPolicy(**{field: 0})


def test_to_dict_limits_fields_and_round_trips():
    result = IngestionResult(
        records=[Permit(plate="A1", member="Ana", start_date=JULY)],
        errors=[RecordError(line=4, reason="Empty plate", raw_fields=["", "Ana"])],
        total_lines=3,
        dialect=Dialect.HEADERLESS,
    )
    assert result.to_dict(only=("dialect", "rejected_count")) == {"dialect": "headerless", "rejected_rows": 1}

    restored = IngestionResultSchema().load(result.to_dict())
    assert restored == result
