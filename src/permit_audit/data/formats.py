"""Constants describing the supported permit file dialects."""

import re

from attrs import define

from .models import ColumnRole

HEADER_DELIMITER = ","
HEADERLESS_DELIMITER = ";"

# Lowercase fragments matched as substrings of each header cell.
# Order matters: roles are resolved top to bottom and a column is claimed once.
COLUMN_ALIASES: dict[ColumnRole, tuple[str, ...]] = {
    ColumnRole.PLATE: ("matrícula", "matricula", "plate", "placa", "license", "licence", "registration"),
    ColumnRole.START_DATE: (
        "fecha inicio",
        "fecha_inicio",
        "fechainicio",
        "inicio",
        "start",
        "desde",
        "valid from",
    ),
    ColumnRole.END_DATE: ("fecha fin", "fecha_fin", "fechafin", "fin", "end", "hasta", "until", "expir"),
    ColumnRole.MEMBER: ("socio", "member", "miembro", "nombre", "titular", "owner"),
    ColumnRole.REGISTRAR: ("usuario", "registrar", "user", "registrado"),
    ColumnRole.NOTE: ("nota", "note", "observ", "comment"),
}

REQUIRED_ROLES = (
    ColumnRole.PLATE,
    ColumnRole.START_DATE,
    ColumnRole.END_DATE,
    ColumnRole.MEMBER,
)

# Fixed column positions for the headerless layout: plate;annotation;start;end
HEADERLESS_POSITIONS = {
    "plate": 0,
    "annotation": 1,
    "start_date": 2,
    "end_date": 3,
}
HEADERLESS_MIN_FIELDS = 3


@define(frozen=True)
class DatePattern:
    """A numeric date layout and the capture group order it uses."""

    name: str
    regex: re.Pattern[str]
    year_first: bool = False


TIMESTAMP_PATTERN = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})\s+(\d{1,2}):(\d{1,2}):(\d{1,2})\s*([A-Za-z]{2,5})$"
)

DATE_PATTERNS = (
    DatePattern("DD/MM/YYYY", re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")),
    DatePattern("DD-MM-YYYY", re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")),
    DatePattern("YYYY/MM/DD", re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$"), year_first=True),
    DatePattern("YYYY-MM-DD", re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$"), year_first=True),
)

# The free-form fallback only runs on text carrying an explicit four digit year.
FALLBACK_YEAR = re.compile(r"\d{4}")

MEMBER_NOTE_PATTERN = re.compile(r"(\d+)-([^,\[\]]+(?:,[^,\[\]]+)*)")
