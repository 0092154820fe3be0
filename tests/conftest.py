"""Global test configuration and fixtures."""

from datetime import datetime
from pathlib import Path

import pytest

from permit_audit.data.models import Permit, classify_permit
from permit_audit.output.plots import PlotReport

HEADER_TEXT = "\n".join(
    [
        "Matrícula,Fecha inicio,Fecha fin,Socio,Usuario,Nota",
        "ABC123,01/01/2024,10/01/2024,juan  pérez,admin,first",
        '"XYZ 789",2024-07-01,2024-07-05,Ana Gómez,admin,"quoted, note"',
        "DEF456,01/07/2024,,ana gómez,,",
        ",01/01/2024,02/01/2024,Nobody,,",
        "GHI000,31/02/2024,nope,Juan Pérez,,",
        "BAD,ROW",
    ]
)

HEADERLESS_TEXT = "\n".join(
    [
        '1234-ABC;"{""note"":""12-Juan Perez"",""user"":""admin""}";'
        "01/07/2024 10:00:00GMT;15/07/2024 10:00:00GMT",
        "5678DEF;34-Maria Lopez;2024-08-01;",
        ";something;01/01/2024;02/01/2024",
        "9999ZZZ;;01/01/2024;02/01/2024",
        "SHORT;x",
    ]
)


def _as_datetime(value: str | datetime | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def build_permit(
    plate: str = "ABC123",
    member: str = "Juan Pérez",
    start: str | datetime | None = None,
    end: str | datetime | None = None,
    **kwargs,
) -> Permit:
    """Create a permit classified the same way the builders do."""
    start_date = _as_datetime(start)
    end_date = _as_datetime(end)
    kwargs.setdefault("permit_type", classify_permit(start_date, end_date))
    return Permit(plate=plate, member=member, start_date=start_date, end_date=end_date, **kwargs)


@pytest.fixture
def make_permit():
    return build_permit


@pytest.fixture
def header_text():
    return HEADER_TEXT


@pytest.fixture
def headerless_text():
    return HEADERLESS_TEXT


@pytest.fixture
def permit_file(tmp_path):
    """Write text to a file under ``tmp_path`` and return its path."""

    def write(text: str, name: str = "permits.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return write


@pytest.fixture(autouse=True)
def fast_plots(monkeypatch):
    # Avoid matplotlib in command tests; touch the target files instead.
    def _fake_plot(permits, output_dir, filename):
        path = Path(output_dir) / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
        return PlotReport(path=path, count=len(list(permits)))

    import cli.main as m

    monkeypatch.setattr(m, "generate_monthly_plot", _fake_plot)
    monkeypatch.setattr(m, "generate_duration_plot", _fake_plot)
