"""Tolerant tokenizers for delimited permit files.

Two dialects are supported and deliberately kept apart:

* the header dialect (``,``) strips quote characters from the extracted fields and
  requires every data row to carry exactly as many fields as the header;
* the headerless dialect (``;``) keeps quote characters verbatim, tracks brace depth
  inside quoted values so embedded JSON-like annotations are never split, and only
  requires a minimum number of fields.
"""

from collections.abc import Iterator

from attrs import define, field

from .formats import HEADER_DELIMITER, HEADERLESS_DELIMITER, HEADERLESS_MIN_FIELDS
from .models import Dialect, RecordError, TabularRow


@define(slots=True)
class TabularResult:
    """Rows that passed the field-count check plus the ones that did not."""

    rows: list[TabularRow] = field(factory=list)
    error_rows: list[RecordError] = field(factory=list)
    total_lines: int = 0


def iter_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, line)`` pairs for the non-blank lines of ``text``."""
    for number, line in enumerate(text.split("\n"), start=1):
        line = line.removesuffix("\r")
        if line.strip():
            yield number, line


def split_quoted(line: str, delimiter: str = HEADER_DELIMITER) -> list[str]:
    """Split a header-dialect line, unwrapping quoted fields."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current).strip())
    return fields


def split_structured(line: str, delimiter: str = HEADERLESS_DELIMITER) -> list[str]:
    """Split a headerless-dialect line, keeping quotes and nested braces intact."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    depth = 0
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
            current.append(char)
        elif char == "{" and in_quotes:
            depth += 1
            current.append(char)
        elif char == "}" and in_quotes:
            depth -= 1
            current.append(char)
        elif char == delimiter and not in_quotes and depth == 0:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current).strip())
    return fields


def _field_count_error(row: TabularRow, expected: int, *, exact: bool) -> RecordError:
    qualifier = "expected" if exact else "minimum"
    return RecordError(
        line=row.line,
        reason=f"Wrong number of columns ({qualifier} {expected}, found {len(row.fields)})",
        raw_fields=row.fields,
    )


def parse_header_rows(text: str, *, expected_fields: int | None = None) -> TabularResult:
    """Tokenize header-dialect text.

    The first non-blank line is returned as the first row and fixes the expected
    field count unless ``expected_fields`` is given.
    """
    result = TabularResult()
    for number, line in iter_lines(text):
        result.total_lines += 1
        row = TabularRow(line=number, fields=split_quoted(line, HEADER_DELIMITER))
        if expected_fields is None:
            expected_fields = len(row.fields)
            result.rows.append(row)
            continue
        if row.is_empty():
            continue
        if len(row.fields) != expected_fields:
            result.error_rows.append(_field_count_error(row, expected_fields, exact=True))
            continue
        result.rows.append(row)
    return result


def parse_headerless_rows(text: str, *, min_fields: int = HEADERLESS_MIN_FIELDS) -> TabularResult:
    """Tokenize headerless-dialect text where every non-blank line is data."""
    result = TabularResult()
    for number, line in iter_lines(text):
        result.total_lines += 1
        row = TabularRow(line=number, fields=split_structured(line, HEADERLESS_DELIMITER))
        if row.is_empty():
            continue
        if len(row.fields) < min_fields:
            result.error_rows.append(_field_count_error(row, min_fields, exact=False))
            continue
        result.rows.append(row)
    return result


def parse(text: str, dialect: Dialect) -> TabularResult:
    """Tokenize ``text`` according to ``dialect``."""
    if dialect is Dialect.HEADER:
        return parse_header_rows(text)
    return parse_headerless_rows(text)


__all__ = [
    "TabularResult",
    "iter_lines",
    "parse",
    "parse_header_rows",
    "parse_headerless_rows",
    "split_quoted",
    "split_structured",
]
