"""Exports and visualizations for permit analytics."""

from .export import summary_payload, views_payload, write_permits_csv
from .plots import (
    DurationPlotConfig,
    MonthlyPlotConfig,
    PlotReport,
    generate_duration_plot,
    generate_monthly_plot,
)

__all__ = [
    "DurationPlotConfig",
    "MonthlyPlotConfig",
    "PlotReport",
    "generate_duration_plot",
    "generate_monthly_plot",
    "summary_payload",
    "views_payload",
    "write_permits_csv",
]
