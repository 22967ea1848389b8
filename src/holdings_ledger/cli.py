"""Holdings Ledger CLI."""

import json
import logging
from pathlib import Path

import click
import yaml

from .analysis.stats import filer_summary, institutional_stats, list_filers
from .analysis.timeline import SORT_OPTIONS
from .config import OVERRIDABLE_SETTINGS, Config, apply_setting, get_config, save_settings
from .enrichment import MappingResolver
from .errors import HoldingsLedgerError, InvalidPeriodError
from .ingest import ingest_filings, load_filings
from .models import CHANGE_TYPES
from .reports.filer_report import generate_filer_report
from .storage.database import Database
from .storage.exports import (
    export_history_to_csv,
    export_history_to_parquet,
    export_timeline_to_csv,
)
from .storage.report_store import FilerReportStore


def validate_output_path(output: str, config: Config) -> Path:
    """
    Validate that an output path is safe (no path traversal).

    Raises:
        click.ClickException: If path is outside allowed directories
    """
    output_path = Path(output).resolve()

    allowed_bases = [
        config.base_dir.resolve(),
        config.artifacts_dir.resolve(),
        Path.cwd().resolve(),
        Path.home().resolve(),
    ]

    for base in allowed_bases:
        try:
            output_path.relative_to(base)
            return output_path
        except ValueError:
            continue

    raise click.ClickException(
        f"Output path must be within the project directory, artifacts, "
        f"current directory, or home directory. Got: {output_path}"
    )


def _format_value(value: int | None) -> str:
    if value is None:
        return "-"
    return f"${value:,}"


def _print_markdown(content: str) -> None:
    """Print markdown content with rich formatting."""
    from rich.console import Console
    from rich.markdown import Markdown

    console = Console()
    console.print(Markdown(content))


def _open_store(config: Config) -> tuple[Database, FilerReportStore]:
    db = Database(config)
    db.connect()
    return db, FilerReportStore(db, config)


@click.group()
@click.option("--home", type=click.Path(file_okay=False, path_type=Path), help="Data home directory")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, home: Path | None, verbose: bool) -> None:
    """Holdings Ledger - quarterly 13F holdings history and QoQ analytics."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = get_config(home)


@cli.command("ingest")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--mappings", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML ticker/sector mappings")
@click.pass_context
def ingest(ctx: click.Context, files: tuple[Path, ...], mappings: Path | None) -> None:
    """Ingest parsed filings from YAML or JSON files."""
    config = ctx.obj["config"]

    filings = []
    load_errors = []
    for path in files:
        try:
            filings.extend(load_filings(path))
        except (ValueError, OSError, yaml.YAMLError) as e:
            load_errors.append(f"Could not load {path}: {e}")

    resolver = MappingResolver.from_yaml(mappings) if mappings else None

    db, store = _open_store(config)
    try:
        result = ingest_filings(store, filings, resolver)
    finally:
        db.close()

    for detail in load_errors:
        click.echo(f"  Error: {detail}")

    for r in result.results:
        note = " (replaced)" if r.replaced else ""
        click.echo(f"  {r.cik} {r.quarter}: {r.holdings_saved} holdings, {r.qoq_calculated} QoQ{note}")
        if r.rediffed_quarters:
            click.echo(f"    Re-diffed: {', '.join(r.rediffed_quarters)}")
    for detail in result.error_details:
        click.echo(f"  Error: {detail}")

    click.echo(
        f"\nProcessed {result.total_processed} filing(s): "
        f"{result.filers_created} filer(s) created, {result.filers_updated} updated, "
        f"{result.errors + len(load_errors)} error(s)"
    )
    if (result.errors or load_errors) and not result.total_processed:
        ctx.exit(1)


@cli.command("filers")
@click.option("--search", help="Filter by name or CIK")
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice(["current_market_value", "current_holdings_count", "last_reported_quarter", "name"]),
    default="current_market_value",
)
@click.option("--asc", is_flag=True, help="Sort ascending")
@click.option("--page", default=1, help="Page number")
@click.option("--limit", default=20, help="Filers per page")
@click.pass_context
def filers(ctx: click.Context, search: str | None, sort_by: str, asc: bool, page: int, limit: int) -> None:
    """List stored filers."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    db, store = _open_store(config)
    try:
        result = list_filers(store.all_filers(), sort_by, not asc, search, page, limit)
    except ValueError as e:
        raise click.ClickException(str(e))
    finally:
        db.close()

    if not result.total:
        click.echo("No filers stored. Use 'ingest' to add filings.")
        return

    console = Console()
    table = Table(title=f"Filers (page {result.page}/{result.pages}, {result.total} total)")
    table.add_column("Name", style="cyan")
    table.add_column("CIK")
    table.add_column("Quarter")
    table.add_column("Holdings", justify="right")
    table.add_column("Market Value", justify="right")

    for f in result.filers:
        activity = f.latest_activity
        table.add_row(
            f.name,
            f.cik,
            activity.last_reported_quarter if activity else "-",
            str(activity.current_holdings_count) if activity else "-",
            _format_value(activity.current_market_value if activity else None),
        )

    console.print(table)


@cli.command("filer")
@click.argument("cik")
@click.pass_context
def filer(ctx: click.Context, cik: str) -> None:
    """Show a filer's identity and per-quarter summary as JSON."""
    config = ctx.obj["config"]
    db, store = _open_store(config)
    try:
        record = store.get_filer(cik)
    except HoldingsLedgerError as e:
        raise click.ClickException(str(e))
    finally:
        db.close()

    click.echo(json.dumps(filer_summary(record), indent=2))


@cli.command("holdings")
@click.argument("cik")
@click.option("--quarters", type=int, help="Number of recent quarters (default from settings)")
@click.option("--sort", "sort_by", type=click.Choice(SORT_OPTIONS), default="latestValue")
@click.option("--change-type", type=click.Choice(CHANGE_TYPES), help="Only instruments with this change")
@click.option("--json", "as_json", is_flag=True, help="Print the timeline as JSON")
@click.option("--limit", default=25, help="Rows to show in the table")
@click.pass_context
def holdings(
    ctx: click.Context,
    cik: str,
    quarters: int | None,
    sort_by: str,
    change_type: str | None,
    as_json: bool,
    limit: int,
) -> None:
    """Show a filer's holdings across recent quarters."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    db, store = _open_store(config)
    try:
        timeline = store.holdings_timeline(cik, quarters, sort_by, change_type)
    except (HoldingsLedgerError, ValueError) as e:
        raise click.ClickException(str(e))
    finally:
        db.close()

    if as_json:
        click.echo(json.dumps(timeline.to_dict(), indent=2))
        return

    if not timeline.quarters:
        click.echo(f"No quarterly reports for {timeline.filer_name}.")
        return

    console = Console()
    table = Table(title=f"{timeline.filer_name} - {len(timeline.holdings)} holdings")
    table.add_column("Issuer", style="cyan")
    table.add_column("Ticker")
    for quarter in timeline.quarters:
        table.add_column(quarter, justify="right")

    for t in timeline.holdings[:limit]:
        cells = []
        for quarter in timeline.quarters:
            point = t.point_for(quarter)
            cells.append(f"{_format_value(point.value)} {point.change_type}" if point else "-")
        table.add_row(t.issuer_name, t.ticker or "-", *cells)

    console.print(table)


@cli.command("stats")
@click.option("--top", type=int, help="Number of top filers to show")
@click.pass_context
def stats(ctx: click.Context, top: int | None) -> None:
    """Show aggregate statistics across all filers."""
    from rich.console import Console
    from rich.table import Table

    config = ctx.obj["config"]
    db, store = _open_store(config)
    try:
        result = institutional_stats(store.all_filers(), top or config.top_filers)
    finally:
        db.close()

    click.echo(f"Filers: {result.total_filers}")
    click.echo(f"Total market value: {_format_value(result.total_market_value)}")
    click.echo(f"Holdings in latest reports: {result.total_holdings}")
    click.echo(
        "Changes: "
        + ", ".join(f"{k} {v}" for k, v in result.change_type_breakdown.items())
    )

    if not result.top_filers:
        return

    console = Console()
    table = Table(title="Top Filers by Market Value")
    table.add_column("Name", style="cyan")
    table.add_column("CIK")
    table.add_column("Quarter")
    table.add_column("Holdings", justify="right")
    table.add_column("Market Value", justify="right")
    for f in result.top_filers:
        table.add_row(f.name, f.cik, f.quarter or "-", str(f.holdings_count), _format_value(f.market_value))
    console.print(table)


@cli.command("report")
@click.argument("cik")
@click.option("--quarter", help="Quarter token, e.g. 25Q2 (default: latest)")
@click.option("--output", "-o", type=click.Path(), help="Output file path")
@click.pass_context
def report(ctx: click.Context, cik: str, quarter: str | None, output: str | None) -> None:
    """Generate a Markdown report for a filer."""
    config = ctx.obj["config"]
    db, store = _open_store(config)
    try:
        record = store.get_filer(cik)
    except HoldingsLedgerError as e:
        raise click.ClickException(str(e))
    finally:
        db.close()

    try:
        report_md = generate_filer_report(record, quarter)
    except InvalidPeriodError as e:
        raise click.ClickException(str(e))

    if output:
        output_path = validate_output_path(output, config)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report_md)
        click.echo(f"Report saved to: {output_path}")
    else:
        _print_markdown(report_md)


@cli.command("settings")
@click.argument("key", required=False, type=click.Choice(OVERRIDABLE_SETTINGS))
@click.argument("value", required=False)
@click.pass_context
def settings(ctx: click.Context, key: str | None, value: str | None) -> None:
    """Show settings, or save a new value for KEY."""
    config = ctx.obj["config"]

    if key is not None and value is not None:
        try:
            apply_setting(config, key, value)
        except ValueError as e:
            raise click.ClickException(f"Invalid value for {key}: {e}")
        save_settings(config)
        click.echo(f"Saved {key} = {getattr(config, key)} to {config.settings_file}")
        return

    for name in OVERRIDABLE_SETTINGS:
        if key is None or name == key:
            click.echo(f"{name}: {getattr(config, name)}")


@cli.command("export")
@click.argument("cik")
@click.option("--format", "fmt", type=click.Choice(["csv", "parquet", "timeline"]), default="csv")
@click.option("--quarters", type=int, help="Quarters in a timeline export")
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.pass_context
def export(ctx: click.Context, cik: str, fmt: str, quarters: int | None, output: str | None) -> None:
    """Export a filer's holdings history to CSV or Parquet."""
    config = ctx.obj["config"]

    if output:
        output_path = validate_output_path(output, config)
    else:
        output_path = config.artifacts_dir / "exports"
    output_path.mkdir(parents=True, exist_ok=True)

    db, store = _open_store(config)
    try:
        if fmt == "timeline":
            path = export_timeline_to_csv(store.holdings_timeline(cik, quarters), output_path)
        elif fmt == "parquet":
            path = export_history_to_parquet(store.get_filer(cik), output_path)
        else:
            path = export_history_to_csv(store.get_filer(cik), output_path)
    except HoldingsLedgerError as e:
        raise click.ClickException(str(e))
    finally:
        db.close()

    click.echo(f"Exported: {path}")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
