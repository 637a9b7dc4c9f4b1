#!/usr/bin/env python3
"""
Budget Office — CLI entry point.

Usage examples:
  python main.py check                                  # Verify setup (DB, client registry)
  python main.py init-config                            # Write default export template / settings
  python main.py report                                 # This month's budgets, by client
  python main.py report --by vendor --period all        # All-time totals per newspaper
  python main.py report --status approved --client acme
  python main.py report --by vendor --export out.csv    # Write the CSV export
  python main.py import-budgets budgets.json            # Bulk-create budgets from JSON
"""
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from pydantic import ValidationError

from bootstrap import ensure_config_files
from budgeting.aggregation import consolidate_by_client, consolidate_by_vendor, filter_budgets, summarize
from budgeting.client_lookup import ClientLookupService
from budgeting.database import Database
from budgeting.export import render_report_csv
from budgeting.validation import draft_errors
from config import Config
from dashboard.services.presentation import format_brl
from models.budget import BudgetDraft
from models.report import ReportFilter


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", "db_path", default=None, type=click.Path(), help="Path to the budgets database")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db_path: str | None) -> None:
    """Budget Office — publication budgets, consolidated reports and exports."""
    ctx.ensure_object(dict)
    _setup_logging(verbose)
    config = Config()
    if db_path:
        config.db_path = Path(db_path)
    ctx.obj["config"] = config


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify the database and the client registry configuration."""
    config: Config = ctx.obj["config"]

    click.echo("\n=== Budget Office Setup Check ===\n")

    db_exists = config.db_path.exists()
    tick = "✓" if db_exists else "✗"
    click.echo(f"  Database:          {tick}  {config.db_path}")
    if db_exists:
        stats = Database(config.db_path).get_stats()
        click.echo(f"     {stats.get('total', 0)} budgets "
                   f"({stats.get('approved', 0)} approved, {stats.get('pending', 0)} pending)")
    else:
        click.echo("     → Created on first write")

    lookup = ClientLookupService.from_config(config)
    tick = "✓" if lookup.configured else "✗"
    click.echo(f"  Client registry:   {tick}  "
               f"{'sheet ' + config.google_sheets_sheet_id if lookup.configured else 'not configured'}")
    if not lookup.configured:
        click.echo("     → Set GOOGLE_SHEETS_CREDENTIALS and GOOGLE_SHEETS_SHEET_ID")

    template = config.export_template_path
    click.echo(f"  Export template:   {'custom ' + str(template) if template.exists() else 'built-in'}")
    click.echo()


# --------------------------------------------------------------------
# init-config command
# --------------------------------------------------------------------

@cli.command("init-config")
@click.pass_context
def init_config(ctx: click.Context) -> None:
    """Write the default export template and settings file into the config dir."""
    config: Config = ctx.obj["config"]
    ensure_config_files(config.config_dir, config.export_template)
    click.echo(f"Config ready in {config.config_dir}")


# --------------------------------------------------------------------
# report command
# --------------------------------------------------------------------

@cli.command()
@click.option("--by", "mode", type=click.Choice(["client", "vendor"]), default="client",
              show_default=True, help="Grouping")
@click.option("--period", type=click.Choice(["today", "week", "month", "custom", "all"]),
              default=None, help="Date range (default from config)")
@click.option("--from", "start_date", type=click.DateTime(["%Y-%m-%d"]), default=None,
              help="Custom period start (YYYY-MM-DD)")
@click.option("--to", "end_date", type=click.DateTime(["%Y-%m-%d"]), default=None,
              help="Custom period end (YYYY-MM-DD)")
@click.option("--status", type=click.Choice(["all", "approved", "not_approved"]), default="all",
              show_default=True)
@click.option("--client", default=None, help="Client name contains")
@click.option("--vendor", default=None, help="Vendor name contains")
@click.option("--export", "export_path", type=click.Path(dir_okay=False), default=None,
              help="Write the CSV export to this file instead of printing")
@click.pass_context
def report(
    ctx: click.Context,
    mode: str,
    period: str | None,
    start_date: datetime | None,
    end_date: datetime | None,
    status: str,
    client: str | None,
    vendor: str | None,
    export_path: str | None,
) -> None:
    """Consolidated budget report by client or by vendor."""
    config: Config = ctx.obj["config"]
    if (start_date or end_date) and period is None:
        period = "custom"

    try:
        report_filter = ReportFilter(
            period=period or config.report_default_period,
            start_date=start_date.date() if start_date else None,
            end_date=end_date.date() if end_date else None,
            status=status,
            client=client,
            vendor=vendor,
        )
    except ValidationError as exc:
        raise click.BadParameter(exc.errors()[0]["msg"])

    budgets = filter_budgets(Database(config.db_path).list_budgets(), report_filter)
    groups = consolidate_by_client(budgets) if mode == "client" else consolidate_by_vendor(budgets)

    if export_path:
        content = render_report_csv(mode, groups, config.export_template_path)
        # newline="" keeps the template's line endings untouched
        with open(export_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        click.echo(f"Exported {len(groups)} {mode} group(s) → {export_path}")
        return

    summary = summarize(budgets)
    click.echo(f"\n=== Budgets by {mode} ({report_filter.period}) ===\n")
    if not groups:
        click.echo("  No budgets found.\n")
        return

    for group in groups:
        name = group.client_name if mode == "client" else group.vendor_name
        count = len(group.budgets) if mode == "client" else len(group.lines)
        click.echo(f"  {name:<40} {format_brl(group.total):>18}   ({count})")

    click.echo()
    click.echo(f"  {'Total':<40} {format_brl(summary.total):>18}   ({summary.count} budgets)")
    click.echo(f"  {'Design fees':<40} {format_brl(summary.design_fee_total):>18}")
    click.echo(f"  {'Publications':<40} {format_brl(summary.publications_total):>18}")
    click.echo()


# --------------------------------------------------------------------
# import-budgets command
# --------------------------------------------------------------------

@cli.command("import-budgets")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--actor", default="import", show_default=True, help="Name recorded in the audit log")
@click.pass_context
def import_budgets(ctx: click.Context, source: str, actor: str) -> None:
    """Create budgets from a JSON array of budget objects."""
    config: Config = ctx.obj["config"]
    with open(source, encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, list):
        raise click.BadParameter("Expected a JSON array of budgets", param_hint="SOURCE")

    db = Database(config.db_path)
    created, failed = 0, 0
    for index, item in enumerate(payload, start=1):
        try:
            draft = BudgetDraft.model_validate(item)
        except ValidationError as exc:
            failed += 1
            click.echo(f"  ✗ item {index}: {exc.errors()[0]['msg']}", err=True)
            continue
        errors = draft_errors(draft)
        if errors:
            failed += 1
            click.echo(f"  ✗ item {index}: {errors[0]}", err=True)
            continue
        budget = db.create_budget(draft, actor=actor)
        created += 1
        click.echo(f"  ✓ #{budget.display_number}  {budget.client_name}  {format_brl(budget.total_value)}")

    click.echo(f"\nImported {created} budget(s), {failed} failed.")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    cli()
