"""Ingestion layer: tokenizing, record building and validation of permit files."""

from .ingest import detect_dialect, ingest_file, ingest_text
from .models import (
    ColumnRole,
    Dialect,
    FatalParseError,
    IngestionResult,
    Permit,
    PermitType,
    RecordError,
)

__all__ = [
    "ColumnRole",
    "Dialect",
    "FatalParseError",
    "IngestionResult",
    "Permit",
    "PermitType",
    "RecordError",
    "detect_dialect",
    "ingest_file",
    "ingest_text",
]
