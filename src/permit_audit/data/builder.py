"""Turn tokenized rows into typed :class:`Permit` records.

Each dialect has its own builder; both expose ``build(row)`` returning either a
:class:`Permit` or the :class:`RecordError` explaining why the row was skipped.
"""

import json
import re
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Protocol

import structlog
from attrs import define, field

from ..policy import TEMPORARY_MAX_DAYS
from .dates import parse_date
from .formats import COLUMN_ALIASES, HEADERLESS_POSITIONS, MEMBER_NOTE_PATTERN, REQUIRED_ROLES
from .models import ColumnRole, Dialect, FatalParseError, Permit, RecordError, TabularRow, classify_permit

logger = structlog.get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_plate(value: str, *, strict: bool = True) -> str:
    """Uppercase a plate and drop whitespace; ``strict`` also drops punctuation."""
    cleaned = _WHITESPACE.sub("", value or "").upper()
    if strict:
        cleaned = "".join(ch for ch in cleaned if ch.isalnum())
    return cleaned


def normalize_member(value: str) -> str:
    """Collapse whitespace and title-case every word of a member name."""
    words = (value or "").split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def extract_member_from_note(note: str) -> str:
    """Pull ``<number>-<name>`` out of a free-text note, else return the note."""
    if not note:
        return ""
    match = MEMBER_NOTE_PATTERN.search(note)
    if match:
        return f"{match.group(1)}-{match.group(2).strip()}"
    return note.strip()


@define(frozen=True)
class MemberInfo:
    """Member identity and metadata extracted from an annotation field."""

    member: str
    registrar: str = ""
    note: str = ""


def extract_member_info(annotation: str) -> MemberInfo:
    """Read member, registrar and note from a headerless annotation field."""
    if not annotation:
        return MemberInfo(member="")
    if len(annotation) >= 2 and annotation.startswith('"') and annotation.endswith('"'):
        try:
            payload = json.loads(annotation[1:-1])
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("note"):
            note = str(payload["note"])
            return MemberInfo(
                member=extract_member_from_note(note),
                registrar=str(payload.get("user") or ""),
                note=note,
            )
    return MemberInfo(member=extract_member_from_note(annotation), note=annotation)


@define(frozen=True)
class ColumnMapping:
    """Column positions for each logical role found in a header row."""

    positions: dict[ColumnRole, int] = field(factory=dict)

    def get(self, fields: Sequence[str], role: ColumnRole) -> str:
        """Return the field for ``role`` or an empty string when unmapped."""
        index = self.positions.get(role)
        if index is None or index >= len(fields):
            return ""
        return fields[index]

    def missing(self, roles: Sequence[ColumnRole] = REQUIRED_ROLES) -> list[ColumnRole]:
        """Return the roles from ``roles`` that have no column."""
        return [role for role in roles if role not in self.positions]


def match_columns(header: Sequence[str]) -> ColumnMapping:
    """Match header cells to logical roles by case-insensitive alias substrings."""
    lowered = [cell.strip().lower() for cell in header]
    positions: dict[ColumnRole, int] = {}
    claimed: set[int] = set()
    for role, aliases in COLUMN_ALIASES.items():
        for index, cell in enumerate(lowered):
            if index in claimed:
                continue
            if any(alias in cell for alias in aliases):
                positions[role] = index
                claimed.add(index)
                break
    return ColumnMapping(positions=positions)


def resolve_columns(header: Sequence[str]) -> ColumnMapping:
    """Resolve the header row, failing the whole parse on missing roles."""
    mapping = match_columns(header)
    missing = mapping.missing()
    if missing:
        names = ", ".join(role.value for role in missing)
        raise FatalParseError(f"Could not find required columns in header: {names}")
    return mapping


class RecordBuilder(Protocol):
    """Shared interface of the per-dialect record builders."""

    dialect: Dialect

    def build(self, row: TabularRow) -> Permit | RecordError:
        """Convert one tokenized row into a permit or a rejection."""
        ...


def _reject(row: TabularRow, reason: str) -> RecordError:
    logger.debug("ingest.row_rejected", line=row.line, reason=reason)
    return RecordError(line=row.line, reason=reason, raw_fields=row.fields)


@define(slots=True)
class HeaderRecordBuilder:
    """Build permits from comma-separated rows described by a header."""

    mapping: ColumnMapping
    temporary_max_days: int = TEMPORARY_MAX_DAYS
    dialect: Dialect = field(default=Dialect.HEADER, init=False)

    def build(self, row: TabularRow) -> Permit | RecordError:
        """Validate and normalize a data row."""
        fields = row.fields
        plate = normalize_plate(self.mapping.get(fields, ColumnRole.PLATE), strict=True)
        if not plate:
            return _reject(row, "Empty plate")
        member = normalize_member(self.mapping.get(fields, ColumnRole.MEMBER))
        if not member:
            return _reject(row, "Missing member name")
        raw_start = self.mapping.get(fields, ColumnRole.START_DATE)
        raw_end = self.mapping.get(fields, ColumnRole.END_DATE)
        start = parse_date(raw_start)
        end = parse_date(raw_end)
        if start is None and end is None:
            return _reject(row, f"No valid date (start={raw_start!r}, end={raw_end!r})")
        return Permit(
            plate=plate,
            member=member,
            start_date=start,
            end_date=end,
            registrar=self.mapping.get(fields, ColumnRole.REGISTRAR),
            note=self.mapping.get(fields, ColumnRole.NOTE),
            permit_type=classify_permit(start, end, temporary_max_days=self.temporary_max_days),
            source_line=row.line,
            dialect=self.dialect,
        )


@define(slots=True)
class HeaderlessRecordBuilder:
    """Build permits from ``plate;annotation;start;end`` rows."""

    temporary_max_days: int = TEMPORARY_MAX_DAYS
    clock: Callable[[], datetime] = datetime.now
    dialect: Dialect = field(default=Dialect.HEADERLESS, init=False)

    def build(self, row: TabularRow) -> Permit | RecordError:
        """Validate a row and extract member details from its annotation."""
        fields = row.fields

        def at(name: str) -> str:
            index = HEADERLESS_POSITIONS[name]
            return fields[index] if index < len(fields) else ""

        plate = normalize_plate(at("plate"), strict=False)
        if not plate:
            return _reject(row, "Empty plate")
        annotation = at("annotation")
        info = extract_member_info(annotation)
        if not info.member:
            return _reject(row, "Could not extract member information")
        start = parse_date(at("start_date"), allow_timestamp=True)
        end = parse_date(at("end_date"), allow_timestamp=True)
        permit_type = classify_permit(start, end, temporary_max_days=self.temporary_max_days)
        # Headerless exports omit the start of grants issued on the spot.
        if start is None:
            start = self.clock()
        return Permit(
            plate=plate,
            member=info.member,
            start_date=start,
            end_date=end,
            registrar=info.registrar,
            note=info.note,
            permit_type=permit_type,
            source_line=row.line,
            dialect=self.dialect,
            raw_annotation=annotation,
        )


__all__ = [
    "ColumnMapping",
    "HeaderRecordBuilder",
    "HeaderlessRecordBuilder",
    "MemberInfo",
    "RecordBuilder",
    "extract_member_from_note",
    "extract_member_info",
    "match_columns",
    "normalize_member",
    "normalize_plate",
    "resolve_columns",
]
