"""
Prospection CLI

Examples:
    # Warehouses in Normandy, scored for destratification
    prospection search -c 52.10 -r Normandie -p destratification

    # JSON output, piped to jq
    prospection search -c 10.51 -d 76 -p matelas_isolants -f json -q | jq '.results[:5]'

    # Tall buildings only, drop candidates without a known height
    prospection search -c 52 -d 59 -p destratification --min-height 8 --missing-data drop

    # One company
    prospection enrich 55210055400013 -p pression

    # Activity codes
    prospection naf expand 52.1
    prospection naf search entreposage

    # Check configuration
    prospection check
"""

import asyncio
import csv
import io
import json
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .api import run_with_service
from .config import MISSING_DATA_POLICIES, load_config
from .exceptions import InputValidationError
from .export import (
    EXPORT_COLUMNS,
    export_rows,
    format_for_export,
    profile_to_dict,
    result_to_dict,
)
from .models import PRODUCT_TYPES, EnrichedProfile, ProspectionResult, SearchCriteria
from .naf import get_registry
from .sources import ADAPTERS

# Progress to stderr, data to stdout
console = Console(stderr=True)
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool, quiet: bool, debug: bool) -> None:
    """Configure logging based on CLI flags."""
    if quiet:
        level = logging.ERROR
    elif debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def format_output(result: ProspectionResult, output_format: str, no_headers: bool = False) -> str:
    """Format a search result page for stdout."""
    if output_format == "json":
        return json.dumps(result_to_dict(result), indent=2, ensure_ascii=False, default=str)

    rows = format_for_export(result)

    if output_format == "jsonl":
        return "\n".join(json.dumps(row, ensure_ascii=False, default=str) for row in rows)

    elif output_format in ("csv", "tsv"):
        delimiter = "\t" if output_format == "tsv" else ";"
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS, delimiter=delimiter)
        if not no_headers:
            writer.writeheader()
        writer.writerows(rows)
        return output.getvalue()

    else:
        raise ValueError(f"Unknown format: {output_format}")


def _score_color(score: int) -> str:
    return "green" if score >= 70 else "yellow" if score >= 40 else "red"


def display_summary(result: ProspectionResult) -> None:
    """Display a summary table of the ranked prospects."""
    table = Table(title="Prospects", show_header=True, header_style="bold magenta")

    table.add_column("SIRET", style="dim")
    table.add_column("Name", style="cyan", max_width=30)
    table.add_column("City", max_width=20)
    table.add_column("Code")
    table.add_column("Score", justify="right")
    table.add_column("Data", justify="right")
    table.add_column("Main factor", max_width=45)

    for prospect in result.results:
        profile, scoring = prospect.profile, prospect.scoring
        color = _score_color(scoring.score)
        top = max(scoring.factors, key=lambda f: f.points, default=None)
        table.add_row(
            profile.identifier.siret or profile.identifier.siren,
            (profile.name or "-")[:30],
            profile.address.city or "-",
            profile.activity_code or "-",
            f"[{color}]{scoring.score}[/{color}]",
            f"{profile.completeness}%",
            top.justification[:45] if top and top.points else "-",
        )

    console.print(table)
    console.print(
        f"[dim]{len(result.results)} of {result.total} prospects "
        f"(page {result.page}); sources: {', '.join(sorted(result.sources)) or '-'}[/dim]"
    )


def display_profile(profile: EnrichedProfile) -> None:
    """Display one enriched profile."""
    address = profile.address
    lines = [
        f"[bold]{profile.name or '-'}[/bold]",
        f"SIRET: {profile.identifier.siret or '-'}  SIREN: {profile.identifier.siren}",
        f"Adresse: {address.full or '-'}",
        f"Activité: {profile.activity_code or '-'} {profile.activity_label or ''}",
        f"Classe énergie: {profile.energy_class or '-'}",
        f"Complétude: {profile.completeness}%",
        f"Sources: {', '.join(profile.sources) or '-'}",
    ]
    if profile.phone or profile.email:
        lines.append(f"Contact: {profile.phone or ''} {profile.email or ''}".strip())
    for key, value in profile.technical_fields.items():
        lines.append(f"[dim]{key}:[/dim] {value}")
    for recommendation in profile.recommendations:
        lines.append(
            f"[green]→ {recommendation.product}[/green] ({recommendation.pertinence}): "
            f"{recommendation.reason}"
        )
    for warning in profile.warnings:
        lines.append(f"[yellow]! {warning}[/yellow]")

    border = "yellow" if profile.partial else "blue"
    console.print(Panel("\n".join(lines), border_style=border))


# ============================================================================
# CLI Group
# ============================================================================

@click.group(invoke_without_command=True)
@click.pass_context
@click.version_option(version="1.0.0")
def cli(ctx):
    """Find and qualify companies for energy-savings (CEE) retrofit products."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ============================================================================
# Search Command
# ============================================================================

@cli.command()
@click.option("-c", "--code", "codes", multiple=True, help="Activity code, full or partial (repeatable)")
@click.option("-r", "--region", help="Region name or INSEE code")
@click.option("-d", "--department", help="Department code")
@click.option("--postal-code", help="Postal code")
@click.option("--query", help="Free-text company name filter")
@click.option("-p", "--product", type=click.Choice(PRODUCT_TYPES), help="Product to score for")
@click.option("-l", "--limit", default=20, help="Results per page")
@click.option("--page", default=1, help="Page number")
@click.option("-o", "--output", type=click.Path(), help="Output file (default: stdout)")
@click.option("-f", "--format", "output_format",
              type=click.Choice(["csv", "json", "jsonl", "tsv"]),
              default="csv", help="Output format")
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress, only emit data")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.option("--no-headers", is_flag=True, help="Omit headers in CSV/TSV")
# Filtering
@click.option("--min-height", type=float, help="Minimum building height (m)")
@click.option("--min-area", type=float, help="Minimum floor area (m²)")
@click.option("--heating", "heating_types", multiple=True, help="Heating type keyword (repeatable)")
@click.option("--energy-class", "energy_classes", multiple=True, help="Energy class A-G (repeatable)")
@click.option("--min-score", type=click.IntRange(0, 100), help="Minimum score (overrides config)")
@click.option("--missing-data", type=click.Choice(MISSING_DATA_POLICIES),
              help="Keep or drop candidates lacking filtered data")
@click.option("--contacts", is_flag=True, help="Enrich contacts of top results")
# Config
@click.option("--config", type=click.Path(exists=True), help="YAML config file")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--dry-run", is_flag=True, help="Show plan without executing")
def search(
    codes: tuple,
    region: Optional[str],
    department: Optional[str],
    postal_code: Optional[str],
    query: Optional[str],
    product: Optional[str],
    limit: int,
    page: int,
    output: Optional[str],
    output_format: str,
    quiet: bool,
    verbose: bool,
    no_headers: bool,
    min_height: Optional[float],
    min_area: Optional[float],
    heating_types: tuple,
    energy_classes: tuple,
    min_score: Optional[int],
    missing_data: Optional[str],
    contacts: bool,
    config: Optional[str],
    debug: bool,
    dry_run: bool,
):
    """
    Search, enrich and rank prospects.

    Output goes to stdout by default (use -o for file).
    Progress goes to stderr (use -q to suppress).

    Examples:

        prospection search -c 52.10 -r Normandie -p destratification

        prospection search -c 10.51 -d 76 -f json -q | jq '.'
    """
    setup_logging(verbose, quiet, debug)
    settings = load_config(config)

    criteria = SearchCriteria(
        product=product,
        codes=list(codes),
        region=region,
        department=department,
        postal_code=postal_code,
        query=query,
        min_height=min_height,
        min_floor_area=min_area,
        heating_types=list(heating_types),
        energy_classes=list(energy_classes),
        min_score=min_score,
        missing_data_policy=missing_data,
        enrich_contacts=contacts,
        page=page,
        limit=limit,
    )

    # Dry run
    if dry_run:
        expanded = get_registry().expand_all(list(codes))
        click.echo(f"Would search codes: {', '.join(expanded) or '(any)'}")
        click.echo(f"Geography: region={region} department={department} postal_code={postal_code}")
        click.echo(f"Product: {product or settings.default_product}, Limit: {limit}, Page: {page}")
        click.echo(f"Enabled sources: {', '.join(sorted(settings.enabled_sources))}")
        sys.exit(0)

    try:
        if quiet:
            result = asyncio.run(run_with_service(settings, lambda s: s.search(criteria)))
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task("[cyan]Searching and enriching candidates...", total=None)
                result = asyncio.run(run_with_service(settings, lambda s: s.search(criteria)))
    except InputValidationError as e:
        console.print(f"[red]Invalid criteria:[/red] {e}")
        sys.exit(2)

    if output:
        output_path = export_rows(format_for_export(result), output, "json" if "json" in output_format else "csv")
        if not quiet:
            console.print(f"\n[green]Saved:[/green] {output_path}")
            display_summary(result)
    else:
        click.echo(format_output(result, output_format, no_headers))
        if not quiet and result.results:
            display_summary(result)

    # Exit code: 0 if results, 1 if empty
    sys.exit(0 if result.results else 1)


# ============================================================================
# Enrich Command
# ============================================================================

@cli.command()
@click.argument("identifier")
@click.option("-p", "--product", type=click.Choice(PRODUCT_TYPES), help="Product the fields are for")
@click.option("--contacts", is_flag=True, help="Query the contact source")
@click.option("-f", "--format", "output_format", type=click.Choice(["table", "json"]), default="table")
@click.option("--config", type=click.Path(exists=True), help="YAML config file")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def enrich(identifier: str, product: Optional[str], contacts: bool, output_format: str,
           config: Optional[str], verbose: bool, debug: bool):
    """Enrich one company from its SIRET (14 digits) or SIREN (9 digits)."""
    setup_logging(verbose, False, debug)
    settings = load_config(config)

    try:
        profile = asyncio.run(run_with_service(
            settings,
            lambda s: s.enrich_by_identifier(identifier, product, contacts),
        ))
    except InputValidationError as e:
        console.print(f"[red]Invalid identifier:[/red] {e}")
        sys.exit(2)

    if output_format == "json":
        click.echo(json.dumps(profile_to_dict(profile), indent=2, ensure_ascii=False, default=str))
    else:
        display_profile(profile)

    sys.exit(1 if profile.partial and not profile.name else 0)


# ============================================================================
# Suggest Command
# ============================================================================

@cli.command()
@click.argument("partial")
@click.option("-l", "--limit", default=10, help="Max suggestions")
@click.option("--config", type=click.Path(exists=True), help="YAML config file")
def suggest(partial: str, limit: int, config: Optional[str]):
    """Autocomplete company names (3 characters minimum)."""
    setup_logging(False, False, False)
    settings = load_config(config)
    suggestions = asyncio.run(run_with_service(settings, lambda s: s.suggest(partial, limit)))

    for item in suggestions:
        click.echo(f"{item.siret or item.siren}\t{item.label}")

    sys.exit(0 if suggestions else 1)


# ============================================================================
# NAF Commands
# ============================================================================

@cli.group()
def naf():
    """Browse activity (NAF) codes."""


@naf.command("expand")
@click.argument("code")
def naf_expand(code: str):
    """Expand a partial activity code into sub-class codes."""
    registry = get_registry()
    codes = registry.expand(code)
    for item in codes:
        click.echo(f"{item}\t{registry.label(item) or ''}")
    sys.exit(0 if codes else 1)


@naf.command("search")
@click.argument("query")
@click.option("-l", "--limit", default=20, help="Max results")
def naf_search(query: str, limit: int):
    """Search activity codes by code or label."""
    matches = get_registry().search(query, limit)
    for item in matches:
        click.echo(f"{item.code}\t{item.label}")
    sys.exit(0 if matches else 1)


# ============================================================================
# Cache Commands
# ============================================================================

@cli.group()
def cache():
    """Manage the response cache."""


@cache.command("clear")
@click.option("--pattern", default="*", help="Key pattern, e.g. 'bdnb:*'")
@click.option("--config", type=click.Path(exists=True), help="YAML config file")
def cache_clear(pattern: str, config: Optional[str]):
    """Delete cached source responses."""
    setup_logging(False, False, False)
    settings = load_config(config)
    removed = asyncio.run(run_with_service(settings, lambda s: s.clear_cache(pattern)))
    click.echo(f"Removed {removed} cached entries ({settings.cache_backend})")


# ============================================================================
# Check Command
# ============================================================================

@cli.command()
@click.option("--config", type=click.Path(exists=True), help="YAML config file")
def check(config: Optional[str]):
    """Check configuration and source credentials."""
    settings = load_config(config)

    for key in ADAPTERS:
        source = settings.sources[key]
        state = "✓" if settings.is_enabled(key) else "✗"
        click.echo(f"{state} {key}: {source.base_url}")

    sirene = settings.sources["sirene"]
    if sirene.api_key or (sirene.client_id and sirene.client_secret):
        click.echo("✓ INSEE credentials: configured")
    else:
        click.echo("✗ INSEE credentials: not set (registry lookups use recherche-entreprises)")

    if settings.sources["pappers"].api_key:
        click.echo("✓ PAPPERS_API_KEY: configured")
    else:
        click.echo("✗ PAPPERS_API_KEY: not set (contact enrichment disabled)")

    click.echo(f"Cache backend: {settings.cache_backend}")
    click.echo(f"Missing data policy: {settings.missing_data_policy}")
    click.echo(
        "Score thresholds: "
        + ", ".join(f"{p}={settings.threshold_for(p)}" for p in PRODUCT_TYPES)
    )


# ============================================================================
# Version Command
# ============================================================================

@cli.command()
def version():
    """Show version info."""
    from prospection import __version__
    click.echo(f"cee-prospect {__version__}")


# ============================================================================
# Web Command
# ============================================================================

@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.option("--port", default=8000, help="Port to bind to.")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development.")
def web(host: str, port: int, reload: bool) -> None:
    """Start the HTTP API."""
    import uvicorn

    console.print(
        Panel.fit(
            f"[bold]Prospection API[/bold]\n"
            f"Running at: [cyan]http://{host}:{port}/api/v1[/cyan]",
            border_style="blue",
        )
    )
    console.print("Press Ctrl+C to stop\n")

    uvicorn.run(
        "prospection.web.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    cli()
