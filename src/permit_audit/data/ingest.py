"""Orchestration utilities for turning permit files into validated records."""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import structlog

from ..policy import AnalysisPolicy
from . import parser
from .builder import HeaderlessRecordBuilder, HeaderRecordBuilder, RecordBuilder, match_columns, resolve_columns
from .formats import HEADERLESS_DELIMITER
from .models import Dialect, FatalParseError, IngestionResult, Permit, RecordError

logger = structlog.get_logger(__name__)


def detect_dialect(text: str) -> Dialect:
    """Guess the dialect from the first non-blank line."""
    first = next(parser.iter_lines(text), None)
    if first is None:
        return Dialect.HEADER
    _, line = first
    if not match_columns(parser.split_quoted(line)).missing():
        return Dialect.HEADER
    if HEADERLESS_DELIMITER in line:
        return Dialect.HEADERLESS
    return Dialect.HEADER


def _clock(now: datetime | Callable[[], datetime] | None) -> Callable[[], datetime]:
    """Return the callable used to stamp rows that lack a start date."""
    if now is None:
        return datetime.now
    if callable(now):
        return now
    return lambda: now


def _fail(reason: str, **context: object) -> FatalParseError:
    logger.error("ingest.fatal", reason=reason, **context)
    return FatalParseError(reason)


def ingest_text(
    text: str,
    *,
    dialect: Dialect | str | None = None,
    now: datetime | Callable[[], datetime] | None = None,
    policy: AnalysisPolicy | None = None,
) -> IngestionResult:
    """Parse delimited permit text into records and a row-level error log.

    Raises :class:`FatalParseError` for empty input, an unresolvable header, or
    when no row produced a valid record.
    """
    policy = policy or AnalysisPolicy()
    if not text or not text.strip():
        raise _fail("The permit file is empty")
    resolved = Dialect(dialect) if dialect is not None else detect_dialect(text)
    log = logger.bind(dialect=resolved.value)
    log.info("ingest.start", characters=len(text))

    table = parser.parse(text, resolved)
    rows = table.rows
    builder: RecordBuilder
    if resolved is Dialect.HEADER:
        header, rows = rows[0], rows[1:]
        try:
            mapping = resolve_columns(header.fields)
        except FatalParseError as exc:
            log.error("ingest.fatal", reason=str(exc), header=list(header.fields))
            raise
        builder = HeaderRecordBuilder(
            mapping=mapping,
            temporary_max_days=policy.temporary_max_days,
        )
    else:
        builder = HeaderlessRecordBuilder(
            temporary_max_days=policy.temporary_max_days,
            clock=_clock(now),
        )

    records: list[Permit] = []
    errors: list[RecordError] = list(table.error_rows)
    for row in rows:
        outcome = builder.build(row)
        if isinstance(outcome, RecordError):
            errors.append(outcome)
        else:
            records.append(outcome)
    errors.sort(key=lambda error: error.line)

    if not records:
        raise _fail(
            f"No valid permit records could be read ({len(errors)} rows rejected)",
            rejected=len(errors),
        )
    result = IngestionResult(
        records=records,
        errors=errors,
        total_lines=table.total_lines,
        dialect=resolved,
    )
    log.info(
        "ingest.complete",
        records=result.valid_count,
        errors=len(result.errors),
        total_lines=result.total_lines,
    )
    return result


def ingest_file(
    path: str | Path,
    *,
    encoding: str = "utf-8-sig",
    dialect: Dialect | str | None = None,
    now: datetime | Callable[[], datetime] | None = None,
    policy: AnalysisPolicy | None = None,
) -> IngestionResult:
    """Read a permit file from disk and ingest it."""
    source = Path(path)
    logger.debug("ingest.read_file", path=str(source), encoding=encoding)
    text = source.read_text(encoding=encoding)
    return ingest_text(text, dialect=dialect, now=now, policy=policy)


__all__ = ["detect_dialect", "ingest_file", "ingest_text"]
