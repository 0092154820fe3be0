"""Domain models for vehicle-access permit files."""

from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Any

import marshmallow as ma
from attrs import define, field

from ..policy import TEMPORARY_MAX_DAYS


class PermitType(str, Enum):
    """Temporary permits have a bounded span; everything else is permanent."""

    TEMPORARY = "temporary"
    PERMANENT = "permanent"


class Dialect(str, Enum):
    """Input layouts understood by the ingestion pipeline."""

    HEADER = "header"
    HEADERLESS = "headerless"


class ColumnRole(str, Enum):
    """Logical columns resolved from a header row."""

    PLATE = "plate"
    START_DATE = "start_date"
    END_DATE = "end_date"
    MEMBER = "member"
    REGISTRAR = "registrar"
    NOTE = "note"


class FatalParseError(ValueError):
    """Raised when an input file cannot yield a usable dataset at all."""


def _strip(value: str | None) -> str:
    """Trim surrounding whitespace, mapping ``None`` to an empty string."""
    if value is None:
        return ""
    return value.strip()


def classify_permit(
    start: datetime | None,
    end: datetime | None,
    *,
    temporary_max_days: int = TEMPORARY_MAX_DAYS,
) -> PermitType:
    """Classify a permit from its validity interval."""
    if end is None:
        return PermitType.PERMANENT
    if start is None:
        return PermitType.TEMPORARY
    span_days = (end - start).total_seconds() / 86400
    if span_days <= temporary_max_days:
        return PermitType.TEMPORARY
    return PermitType.PERMANENT


@define(slots=True, frozen=True, kw_only=True)
class Permit:
    """A single plate, validity interval and requesting member."""

    plate: str = field(converter=_strip)
    member: str = field(converter=_strip)
    start_date: datetime | None = None
    end_date: datetime | None = None
    registrar: str = field(converter=_strip, default="")
    note: str = field(converter=_strip, default="")
    permit_type: PermitType = field(converter=PermitType, default=PermitType.PERMANENT)
    source_line: int = 0
    dialect: Dialect = field(converter=Dialect, default=Dialect.HEADER)
    raw_annotation: str = ""

    @property
    def is_temporary(self) -> bool:
        """Return True for permits classified as temporary."""
        return self.permit_type is PermitType.TEMPORARY

    @property
    def has_both_dates(self) -> bool:
        """Return True when the permit carries a start and an end date."""
        return self.start_date is not None and self.end_date is not None

    @property
    def reference_date(self) -> datetime | None:
        """Return the date used to place the permit on a calendar."""
        return self.start_date if self.start_date is not None else self.end_date


@define(slots=True, frozen=True)
class RecordError:
    """A rejected input row and the reason it was skipped."""

    line: int
    reason: str
    raw_fields: tuple[str, ...] = field(converter=tuple, factory=tuple)


@define(slots=True, frozen=True)
class TabularRow:
    """Fields extracted from one non-blank input line."""

    line: int
    fields: tuple[str, ...] = field(converter=tuple)

    def is_empty(self) -> bool:
        """Return True when every field is blank."""
        return all(not value for value in self.fields)


@define(slots=True)
class IngestionResult:
    """Outcome of turning raw delimited text into permit records."""

    records: list[Permit] = field(factory=list)
    errors: list[RecordError] = field(factory=list)
    total_lines: int = 0
    dialect: Dialect = Dialect.HEADER

    @property
    def valid_count(self) -> int:
        """Number of records accepted into the dataset."""
        return len(self.records)

    @property
    def error_rate(self) -> float:
        """Percentage of processed rows that were rejected."""
        if not self.records:
            return 0.0
        return round(len(self.errors) / (len(self.records) + len(self.errors)) * 100, 2)

    @property
    def rejected_count(self) -> int:
        """Number of rows skipped while reading the file."""
        return len(self.errors)

    def to_dict(self, *, only: Sequence[str] | None = None) -> dict[str, object]:
        """Return a JSON-friendly representation of the ingestion outcome.

        ``only`` limits the payload to the named attributes, e.g. to drop the
        record and error listings from a summary.
        """
        return IngestionResultSchema(only=only).dump(self)


class PermitSchema(ma.Schema):
    """Marshmallow schema for :class:`Permit` records."""

    plate = ma.fields.Str(required=True)
    member = ma.fields.Str(required=True)
    start_date = ma.fields.DateTime(allow_none=True, load_default=None)
    end_date = ma.fields.DateTime(allow_none=True, load_default=None)
    registrar = ma.fields.Str(load_default="")
    note = ma.fields.Str(load_default="")
    permit_type = ma.fields.Enum(PermitType, by_value=True, required=True)
    source_line = ma.fields.Int(load_default=0)
    dialect = ma.fields.Enum(Dialect, by_value=True, load_default=Dialect.HEADER)
    raw_annotation = ma.fields.Str(load_default="")

    @ma.post_load
    def make_permit(self, data: dict[str, Any], **kwargs: object) -> Permit:
        """Instantiate :class:`Permit` from validated payloads."""
        return Permit(**data)


class RecordErrorSchema(ma.Schema):
    """Marshmallow schema for :class:`RecordError`."""

    line = ma.fields.Int(required=True)
    reason = ma.fields.Str(required=True)
    raw_fields = ma.fields.List(ma.fields.Str(), load_default=list)

    @ma.post_load
    def make_error(self, data: dict[str, Any], **kwargs: object) -> RecordError:
        """Instantiate :class:`RecordError` records."""
        return RecordError(**data)


class IngestionResultSchema(ma.Schema):
    """Marshmallow schema for serializing :class:`IngestionResult` snapshots."""

    class Meta:
        unknown = ma.EXCLUDE

    records = ma.fields.List(ma.fields.Nested(PermitSchema), required=True)
    errors = ma.fields.List(ma.fields.Nested(RecordErrorSchema), required=True)
    total_lines = ma.fields.Int(required=True)
    dialect = ma.fields.Enum(Dialect, by_value=True, required=True)
    valid_count = ma.fields.Int(dump_only=True, data_key="valid_records")
    rejected_count = ma.fields.Int(dump_only=True, data_key="rejected_rows")
    error_rate = ma.fields.Float(dump_only=True)

    @ma.post_load
    def make_result(self, data: dict[str, Any], **kwargs: object) -> IngestionResult:
        """Instantiate :class:`IngestionResult` objects from validated payloads."""
        return IngestionResult(
            records=data["records"],
            errors=data["errors"],
            total_lines=data["total_lines"],
            dialect=data["dialect"],
        )


__all__ = [
    "ColumnRole",
    "Dialect",
    "FatalParseError",
    "IngestionResult",
    "IngestionResultSchema",
    "Permit",
    "PermitSchema",
    "PermitType",
    "RecordError",
    "RecordErrorSchema",
    "TabularRow",
    "classify_permit",
]
