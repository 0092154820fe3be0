"""Plotting tools for permit activity."""

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.ticker import MaxNLocator

from ..analysis.grouping import month_key
from ..analysis.intervals import duration_days
from ..data.models import Permit
from .utils import ensure_directory


@dataclass(frozen=True)
class MonthlyPlotConfig:
    """Styling options for the monthly totals bar chart."""

    title: str = "Permits per month"
    xlabel: str = "Month"
    ylabel: str = "Permits"
    color: str = "#126782"
    alpha: float = 0.8


@dataclass(frozen=True)
class DurationPlotConfig:
    """Configuration values for the temporary-permit duration histogram."""

    title: str = "Temporary permit durations"
    xlabel: str = "Days"
    ylabel: str = "Permits"
    bins: int = 30
    color: str = "#d08300"
    alpha: float = 0.6


@dataclass(frozen=True)
class PlotReport:
    """Metadata describing a saved plot."""

    path: Path
    count: int


def monthly_counts(permits: Iterable[Permit]) -> tuple[list[str], np.ndarray]:
    """Return chronologically sorted month labels and their permit totals."""
    totals: dict[str, int] = {}
    for permit in permits:
        if permit.start_date is None:
            continue
        key = month_key(permit.start_date)
        totals[key] = totals.get(key, 0) + 1
    labels = sorted(totals)
    return labels, np.asarray([totals[label] for label in labels], dtype=int)


def temporary_durations(permits: Iterable[Permit]) -> np.ndarray:
    """Durations in days of dated temporary permits, each at least one day."""
    values = [
        max(1, duration_days(permit) or 0)
        for permit in permits
        if permit.is_temporary and permit.has_both_dates
    ]
    return np.asarray(values, dtype=float)


def generate_monthly_plot(
    permits: Iterable[Permit],
    *,
    output_dir: str | Path = "out",
    filename: str = "monthly.png",
    config: MonthlyPlotConfig | None = None,
) -> PlotReport:
    """Render a bar chart of permits registered per month."""
    config = config or MonthlyPlotConfig()
    out_dir = ensure_directory(output_dir)
    labels, counts = monthly_counts(permits)

    fig, ax = plt.subplots(figsize=(11, 6))
    positions = np.arange(len(labels))
    ax.bar(positions, counts, color=config.color, alpha=config.alpha, edgecolor="white")
    ax.set_xticks(positions)
    ax.set_xticklabels(labels, rotation=45, ha="right")
    ax.yaxis.set_major_locator(MaxNLocator(integer=True))
    ax.set_title(config.title)
    ax.set_xlabel(config.xlabel)
    ax.set_ylabel(config.ylabel)
    ax.grid(True, axis="y", linestyle="--", linewidth=0.5, alpha=0.6)
    fig.tight_layout()

    output_path = out_dir / filename
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return PlotReport(path=output_path, count=int(counts.sum()))


def generate_duration_plot(
    permits: Iterable[Permit],
    *,
    output_dir: str | Path = "out",
    filename: str = "durations.png",
    config: DurationPlotConfig | None = None,
) -> PlotReport:
    """Render a histogram of temporary permit durations with a mean marker."""
    config = config or DurationPlotConfig()
    out_dir = ensure_directory(output_dir)
    durations = temporary_durations(permits)

    fig, ax = plt.subplots(figsize=(11, 6))
    if durations.size:
        ax.hist(
            durations,
            bins=config.bins,
            color=config.color,
            alpha=config.alpha,
            edgecolor="white",
        )
        mean = float(durations.mean())
        ax.axvline(
            mean,
            color="#333333",
            linestyle="--",
            linewidth=1.5,
            label=f"Mean ≈ {mean:.1f} days",
        )
        ax.legend(loc="upper right")
    ax.yaxis.set_major_locator(MaxNLocator(integer=True))
    ax.set_title(config.title)
    ax.set_xlabel(config.xlabel)
    ax.set_ylabel(config.ylabel)
    ax.grid(True, linestyle="--", linewidth=0.5, alpha=0.6)
    fig.tight_layout()

    output_path = out_dir / filename
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return PlotReport(path=output_path, count=int(durations.size))


__all__ = [
    "DurationPlotConfig",
    "MonthlyPlotConfig",
    "PlotReport",
    "generate_duration_plot",
    "generate_monthly_plot",
    "monthly_counts",
    "temporary_durations",
]
