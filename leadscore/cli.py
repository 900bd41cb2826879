"""Typer CLI application for the Lead Score Engine.

Provides commands to score a business (live or from a saved payload
bundle), resolve locations, initialise the database and browse stored
score history.
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console()
app = typer.Typer(
    name="leadscore",
    help="Lead Score Engine -- comprehensive business scoring for healthcare-marketing prospects.",
    add_completion=False,
    no_args_is_help=True,
)

_CONFIG_OPTION = typer.Option("config/settings.yaml", "--config", "-c", help="Path to settings.yaml.")


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging level and format."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context."""
    return asyncio.run(coro)


def _get_app(config: str, init_database: bool = True):
    """Lazy-import and return an initialised LeadScoreApp."""
    from leadscore.app import LeadScoreApp
    lead_app = LeadScoreApp(config_path=config, init_database=init_database)
    lead_app.initialize()
    return lead_app


def _score_style(score: int) -> str:
    if score >= 70:
        return "green"
    if score >= 40:
        return "yellow"
    return "red"


def _print_report(report: dict) -> None:
    """Pretty-print a score report using Rich."""
    scores = report.get("scores", {})
    table = Table(title="Scores", show_header=True, header_style="bold magenta")
    table.add_column("Score", style="cyan", min_width=22)
    table.add_column("Value", justify="right", min_width=8)
    rows = [
        ("Local presence", scores.get("presence_score", 0)),
        ("SEO", scores.get("seo_score", 0)),
        ("Ads activity", scores.get("ads_activity_score", 0)),
        ("Engagement", scores.get("engagement_score", 0)),
        ("Lead score", scores.get("lead_score", 0)),
        ("Opportunity score", report.get("opportunity_score", 0)),
    ]
    for label, value in rows:
        style = _score_style(value)
        table.add_row(label, f"[{style}]{value}[/{style}]")
    console.print(table)

    ads = report.get("ad_performance", {})
    console.print(
        f"Paid ETV: {ads.get('paid_etv', 0)}  |  Creatives: {ads.get('creatives_count', 0)}  |  "
        f"Last active: {ads.get('last_active_date') or 'never'}"
    )

    failed = report.get("failed_sources") or []
    if failed:
        console.print(f"[yellow]Sources without data: {', '.join(failed)}[/yellow]")

    recommendations = report.get("recommendations") or []
    if recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for i, rec in enumerate(recommendations, 1):
            console.print(f"  {i}. {rec}")


# ------------------------------------------------------------------
# score
# ------------------------------------------------------------------
@app.command()
def score(
    business_name: str = typer.Argument(..., help="Business name as listed on Google."),
    domain: str = typer.Argument(..., help="Business website domain (e.g. example.com)."),
    location: str = typer.Argument(..., help="Location, e.g. 'St. Louis, MO' or a ZIP code."),
    keyword: Optional[list[str]] = typer.Option(None, "--keyword", "-k", help="Target keyword (repeatable)."),
    bundle: Optional[Path] = typer.Option(None, "--bundle", "-b", help="Score a saved JSON payload bundle offline."),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO-8601) for recency windows."),
    save: bool = typer.Option(True, "--save/--no-save", help="Persist the report to the database."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw report as JSON."),
    config: str = _CONFIG_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Score a business and print its lead score and recommendations."""
    _setup_logging(verbose)
    from leadscore.modules.scoring import LeadRequest, RawMetricBundle

    try:
        request = LeadRequest(business_name, domain, location, tuple(keyword or ()))
        reference = datetime.fromisoformat(now) if now else None
    except (TypeError, ValueError) as exc:
        console.print(f"[red]Invalid input: {exc}[/red]")
        raise typer.Exit(code=1)

    lead_app = _get_app(config, init_database=save)
    if not as_json:
        console.print(Panel(f"[bold cyan]Lead Score: {business_name} ({domain})[/bold cyan]"))

    if bundle is not None:
        try:
            raw = RawMetricBundle.from_dict(json.loads(bundle.read_text(encoding="utf-8")))
        except (OSError, ValueError, TypeError) as exc:
            console.print(f"[red]Could not read bundle {bundle}: {exc}[/red]")
            raise typer.Exit(code=1)
        match = lead_app.get_resolver().resolve(location)
        report_obj = lead_app.get_engine().score(request, raw, now=reference, location_code=match.code)
        if save:
            from leadscore.history import save_report
            save_report(report_obj)
        report = report_obj.to_dict()
    else:
        workflow = lead_app.build_workflow()

        async def _run():
            try:
                return await workflow.run_lead_scoring(request, persist=save, now=reference)
            finally:
                await workflow.close()

        try:
            with Progress(
                SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                console=console, transient=True, disable=as_json,
            ) as progress:
                progress.add_task(description="Collecting data and scoring...", total=None)
                results = _run_async(_run())
        except (RuntimeError, ValueError) as exc:
            console.print(f"[red]Scoring failed: {exc}[/red]")
            raise typer.Exit(code=1)
        report = results["report"]

    if as_json:
        typer.echo(json.dumps(report, indent=2, default=str))
    else:
        _print_report(report)


# ------------------------------------------------------------------
# locate
# ------------------------------------------------------------------
@app.command()
def locate(
    location: str = typer.Argument(..., help="Free-text location or ZIP code."),
    config: str = _CONFIG_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Resolve a location string to a DataForSEO location code."""
    _setup_logging(verbose)
    lead_app = _get_app(config, init_database=False)
    match = lead_app.get_resolver().resolve(location)

    table = Table(title="Location", show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan", min_width=10)
    table.add_column("Value")
    table.add_row("Input", location)
    table.add_row("Code", str(match.code))
    table.add_row("Name", match.name)
    table.add_row("Score", str(match.score))
    table.add_row("Source", match.source)
    console.print(table)


# ------------------------------------------------------------------
# history
# ------------------------------------------------------------------
@app.command()
def history(
    domain: str = typer.Argument(..., help="Domain whose stored reports to list."),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum number of reports."),
    config: str = _CONFIG_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show stored lead-score history for a domain."""
    _setup_logging(verbose)
    _get_app(config)
    from leadscore.history import list_reports

    reports = list_reports(domain, limit=limit)
    if not reports:
        console.print(f"[yellow]No stored reports for {domain}.[/yellow]")
        return

    table = Table(title=f"Lead score history: {domain}", show_header=True, header_style="bold magenta")
    for column in ("Scored at", "Lead", "Presence", "SEO", "Ads", "Engagement", "Opportunity"):
        table.add_column(column, justify="right" if column != "Scored at" else "left")
    for row in reports:
        table.add_row(
            (row["scored_at"] or "")[:19],
            str(row["lead_score"]),
            str(row["presence_score"]),
            str(row["seo_score"]),
            str(row["ads_activity_score"]),
            str(row["engagement_score"]),
            str(row["opportunity_score"]),
        )
    console.print(table)


# ------------------------------------------------------------------
# init-db
# ------------------------------------------------------------------
@app.command("init-db")
def init_db_cmd(
    config: str = _CONFIG_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Create the database tables."""
    _setup_logging(verbose)
    _get_app(config)
    console.print("[green]Database initialised.[/green]")


# ------------------------------------------------------------------
# status
# ------------------------------------------------------------------
@app.command()
def status(
    config: str = _CONFIG_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show configuration, gazetteer, credential and database status."""
    _setup_logging(verbose)
    lead_app = _get_app(config)

    table = Table(title="Component Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", min_width=15)
    table.add_column("Status", min_width=10)
    table.add_column("Details", max_width=60)
    for name, info in lead_app.get_status().items():
        state = info.get("status", "unknown")
        colour = {"ok": "green", "warning": "yellow", "error": "red"}.get(state, "white")
        table.add_row(name, f"[{colour}]{state}[/{colour}]", str(info.get("details", "")))
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
