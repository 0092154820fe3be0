"""Command line entry point for the permit-audit application."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import click
import structlog

from permit_audit.analysis import (
    FilterCriteria,
    GroupedPermits,
    SuspicionCriteria,
    filter_subset,
    find_duplicate_plates,
    find_suspicious,
    group_permits,
    search_groups,
    stats_by_period,
)
from permit_audit.analysis.filters import PERMIT_TYPES, SEASONS
from permit_audit.analysis.grouping import PERIODS
from permit_audit.data import FatalParseError, IngestionResult, ingest_file
from permit_audit.logging import configure_logging
from permit_audit.output import generate_duration_plot, generate_monthly_plot
from permit_audit.output.export import (
    duplicate_to_dict,
    errors_payload,
    flagged_to_dict,
    period_to_dict,
    summary_payload,
    views_payload,
    write_permits_csv,
)
from permit_audit.output.utils import format_date
from permit_audit.policy import SHORT_PERMIT_DAYS, TEMPORARY_MAX_DAYS, AnalysisPolicy

LOG_FORMAT_CHOICES = ("console", "json")
LOG_LEVEL_CHOICES = ("critical", "error", "warning", "info", "debug")
DIALECT_CHOICES = ("auto", "header", "headerless")
DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y"]

PERMIT_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)

logger = structlog.get_logger(__name__)


def _policy(ctx: click.Context) -> AnalysisPolicy:
    ctx.ensure_object(dict)
    return ctx.obj.get("policy") or AnalysisPolicy()


def _load(ctx: click.Context, path: Path) -> IngestionResult:
    """Ingest ``path`` with the group-level settings, surfacing fatal errors to the user."""
    ctx.ensure_object(dict)
    dialect = ctx.obj.get("dialect")
    try:
        return ingest_file(path, dialect=dialect, policy=_policy(ctx))
    except FatalParseError as exc:
        raise click.ClickException(f"{path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise click.ClickException(f"{path}: file is not valid UTF-8 text ({exc.reason}).") from exc


def _load_grouped(ctx: click.Context, path: Path) -> tuple[IngestionResult, GroupedPermits]:
    result = _load(ctx, path)
    return result, group_permits(result.records)


def _emit_json(payload: object, output: Path | None = None) -> None:
    """Print a JSON document or write it to ``output``."""
    document = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(document, encoding="utf-8")
        click.echo(f"Wrote summary to {output}")
    else:
        click.echo(document)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVEL_CHOICES, case_sensitive=False),
    envvar="PERMIT_AUDIT_LOG_LEVEL",
    default="info",
    show_default=True,
    help="Verbosity for structured logs.",
)
@click.option(
    "--log-format",
    type=click.Choice(LOG_FORMAT_CHOICES, case_sensitive=False),
    envvar="PERMIT_AUDIT_LOG_FORMAT",
    default="console",
    show_default=True,
    help="Render logs as console-friendly text or JSON.",
)
@click.option(
    "--dialect",
    type=click.Choice(DIALECT_CHOICES, case_sensitive=False),
    envvar="PERMIT_AUDIT_DIALECT",
    default="auto",
    show_default=True,
    help="Input layout; auto inspects the first line.",
)
@click.option(
    "--temporary-max-days",
    type=int,
    envvar="PERMIT_AUDIT_TEMPORARY_MAX_DAYS",
    default=TEMPORARY_MAX_DAYS,
    show_default=True,
    help="Longest span, in days, still classified as a temporary permit.",
)
@click.option(
    "--short-permit-days",
    type=int,
    envvar="PERMIT_AUDIT_SHORT_PERMIT_DAYS",
    default=SHORT_PERMIT_DAYS,
    show_default=True,
    help="Temporary permits lasting this many days or fewer count as short.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    log_level: str,
    log_format: str,
    dialect: str,
    temporary_max_days: int,
    short_permit_days: int,
) -> None:
    """Audit vehicle-access permit files for member usage patterns."""
    configure_logging(level=log_level, json_output=log_format.lower() == "json")
    try:
        policy = AnalysisPolicy(
            temporary_max_days=temporary_max_days,
            short_permit_days=short_permit_days,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    ctx.ensure_object(dict)
    ctx.obj.update(
        {
            "policy": policy,
            "dialect": None if dialect.lower() == "auto" else dialect.lower(),
        }
    )
    logger.bind(command_group="permit-audit").debug(
        "cli.initialized",
        dialect=dialect.lower(),
        temporary_max_days=policy.temporary_max_days,
        short_permit_days=policy.short_permit_days,
        log_level=log_level.lower(),
        log_format=log_format.lower(),
    )


@cli.command("summary")
@click.argument("path", type=PERMIT_FILE)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Optional path to write the JSON summary.",
)
@click.pass_context
def summary(ctx: click.Context, *, path: Path, output: Path | None) -> None:
    """Report ingestion counts, the error rate and dataset statistics."""
    result, grouped = _load_grouped(ctx, path)
    _emit_json(summary_payload(result, grouped), output)


@cli.command("errors")
@click.argument("path", type=PERMIT_FILE)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON instead of text.")
@click.pass_context
def errors(ctx: click.Context, *, path: Path, as_json: bool) -> None:
    """List the rows that were rejected while reading the file."""
    result = _load(ctx, path)
    if as_json:
        _emit_json(errors_payload(result))
        return
    if not result.errors:
        click.echo("No rejected rows.")
        return
    for error in result.errors:
        click.echo(f"line {error.line}: {error.reason}")
    click.echo(f"{len(result.errors)} rejected rows ({result.error_rate:.2f}%).")


@cli.command("members")
@click.argument("path", type=PERMIT_FILE)
@click.option("--min-count", type=click.IntRange(min=1), default=1, show_default=True, help="Minimum permits per member.")
@click.option("--from", "date_from", type=click.DateTime(formats=DATE_FORMATS), help="Earliest reference date.")
@click.option("--to", "date_to", type=click.DateTime(formats=DATE_FORMATS), help="Latest reference date.")
@click.option("--last-days", type=click.IntRange(min=1), help="Only permits from the last N days.")
@click.option(
    "--season",
    type=click.Choice(SEASONS, case_sensitive=False),
    default="all",
    show_default=True,
    help="Restrict permits to summer or winter start dates.",
)
@click.option(
    "--type",
    "permit_type",
    type=click.Choice(PERMIT_TYPES, case_sensitive=False),
    default="all",
    show_default=True,
    help="Restrict permits by classification.",
)
@click.option("--search", "name_search", default="", help="Case-insensitive member name filter.")
@click.option(
    "--export",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the matching permits to this CSV file.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON instead of text.")
@click.pass_context
def members(
    ctx: click.Context,
    *,
    path: Path,
    min_count: int,
    date_from: datetime | None,
    date_to: datetime | None,
    last_days: int | None,
    season: str,
    permit_type: str,
    name_search: str,
    export: Path | None,
    as_json: bool,
) -> None:
    """Show per-member analytics after applying the filters."""
    if date_from and date_to and date_from > date_to:
        raise click.UsageError("--from must not be later than --to.")
    _, grouped = _load_grouped(ctx, path)
    criteria = FilterCriteria(
        min_count=min_count,
        date_from=date_from,
        date_to=date_to,
        last_days=last_days,
        season=season,
        permit_type=permit_type,
        name_search=name_search,
    )
    views = filter_subset(grouped, criteria, short_permit_days=_policy(ctx).short_permit_days)
    if export:
        rows = write_permits_csv(views, export)
        click.echo(f"Exported {rows} permits to {export}")
    if as_json:
        _emit_json(views_payload(views))
        return
    if not views:
        click.echo("No members match the filters.")
        return
    for view in views:
        click.echo(
            f"{view.member}: {view.total} permits "
            f"({view.temporary} temporary, {view.permanent} permanent), "
            f"{view.plate_count} plates, avg {view.average_duration} days, "
            f"{view.short_permits} short, {view.overlaps} overlaps, "
            f"peak {view.peak.count} on {format_date(view.peak.at_date)}, "
            f"last {format_date(view.last_registered)}"
        )


@cli.command("suspicious")
@click.argument("path", type=PERMIT_FILE)
@click.option("--min-plates", type=click.IntRange(min=1), default=8, show_default=True, help="Plate count that raises an issue.")
@click.option(
    "--short-duration-days",
    type=click.IntRange(min=0),
    default=30,
    show_default=True,
    help="Permits this short or shorter count towards the short-period issue.",
)
@click.option(
    "--overlaps/--no-overlaps",
    "check_overlaps",
    default=True,
    show_default=True,
    help="Check for overlapping periods on the same plate.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON instead of text.")
@click.pass_context
def suspicious(
    ctx: click.Context,
    *,
    path: Path,
    min_plates: int,
    short_duration_days: int,
    check_overlaps: bool,
    as_json: bool,
) -> None:
    """Rank members whose permit usage looks anomalous."""
    _, grouped = _load_grouped(ctx, path)
    criteria = SuspicionCriteria(
        min_plates=min_plates,
        short_duration_days=short_duration_days,
        check_overlaps=check_overlaps,
    )
    flagged = find_suspicious(grouped, criteria)
    if as_json:
        _emit_json([flagged_to_dict(member) for member in flagged])
        return
    if not flagged:
        click.echo("No suspicious members found.")
        return
    for member in flagged:
        click.echo(f"[{member.severity}] {member.member} ({member.plate_count} plates)")
        for issue in member.issues:
            click.echo(f"    - {issue}")


@cli.command("duplicates")
@click.argument("path", type=PERMIT_FILE)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON instead of text.")
@click.pass_context
def duplicates(ctx: click.Context, *, path: Path, as_json: bool) -> None:
    """List plates registered by more than one member."""
    result = _load(ctx, path)
    shared = find_duplicate_plates(result.records)
    if as_json:
        _emit_json([duplicate_to_dict(duplicate) for duplicate in shared])
        return
    if not shared:
        click.echo("No plates are shared between members.")
        return
    for duplicate in shared:
        click.echo(f"{duplicate.plate}: {', '.join(duplicate.members)} ({len(duplicate.permits)} permits)")


@cli.command("periods")
@click.argument("path", type=PERMIT_FILE)
@click.option(
    "--period",
    type=click.Choice(PERIODS, case_sensitive=False),
    default="month",
    show_default=True,
    help="Calendar bucket for the statistics.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON instead of text.")
@click.pass_context
def periods(ctx: click.Context, *, path: Path, period: str, as_json: bool) -> None:
    """Aggregate permits per day, week, month or year of their start date."""
    result = _load(ctx, path)
    buckets = stats_by_period(result.records, period.lower())
    if as_json:
        _emit_json([period_to_dict(bucket) for bucket in buckets])
        return
    for bucket in buckets:
        click.echo(
            f"{bucket.period}: {bucket.total} permits "
            f"({bucket.temporary} temporary, {bucket.permanent} permanent), "
            f"{bucket.unique_members} members"
        )


@cli.command("search")
@click.argument("path", type=PERMIT_FILE)
@click.argument("text")
@click.pass_context
def search(ctx: click.Context, *, path: Path, text: str) -> None:
    """Find members by name, plate or note text."""
    _, grouped = _load_grouped(ctx, path)
    matches = search_groups(grouped, text)
    if not matches:
        click.echo(f"No members match {text!r}.")
        return
    for group in matches:
        click.echo(f"{group.member}: {group.total} permits, plates {', '.join(group.plates)}")


@cli.command("plot")
@click.argument("path", type=PERMIT_FILE)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("out"),
    show_default=True,
    help="Directory for the rendered charts.",
)
@click.pass_context
def plot(ctx: click.Context, *, path: Path, output_dir: Path) -> None:
    """Render the monthly totals chart and the duration histogram."""
    result = _load(ctx, path)
    monthly = generate_monthly_plot(result.records, output_dir=output_dir, filename="monthly.png")
    durations = generate_duration_plot(result.records, output_dir=output_dir, filename="durations.png")
    logger.info(
        "plot.rendered",
        monthly=str(monthly.path),
        durations=str(durations.path),
        permits=monthly.count,
    )
    click.echo(f"Monthly chart written to {monthly.path}")
    click.echo(f"Duration histogram written to {durations.path}")


if __name__ == "__main__":
    cli()
