"""Shared helpers for rendering permit reports."""

from datetime import datetime
from pathlib import Path

MISSING = "N/A"
DATE_FORMAT = "%d/%m/%Y"


def ensure_directory(path: str | Path) -> Path:
    """Create the directory at ``path`` if needed and return its Path."""
    directory = Path(path)
    if not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)
    return directory


def format_date(value: datetime | None) -> str:
    """Format a date as ``DD/MM/YYYY`` or ``N/A`` when missing."""
    if value is None:
        return MISSING
    return value.strftime(DATE_FORMAT)


def format_optional(value: str | None) -> str:
    """Return ``value`` or ``N/A`` for blank text."""
    return value if value else MISSING
