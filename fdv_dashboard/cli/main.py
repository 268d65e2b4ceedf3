"""CLI entry point for the FDV comparison dashboard.

Usage:
    fdv-dashboard show
    fdv-dashboard show --points 10000 --output json
    fdv-dashboard report --output almanak_live_data.csv --program program.yaml
    fdv-dashboard serve --port 3001
    fdv-dashboard bonus --fdv 500 --deposit 10000 --tvl 20000000
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..calculator.bonus import calc_bonus_apr
from ..core.config import get_config, load_program_config
from ..core.exceptions import DashboardError
from ..orchestrator import ComparisonOrchestrator
from ..output.formatters import JSONFormatter, TableFormatter, format_currency, format_number
from ..report import DEFAULT_OUTPUT, generate_report

# Initialize app
app = typer.Typer(
    name="fdv-dashboard",
    help="FDV comparison dashboard for the Almanak allocation program",
    add_completion=False,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
    )
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


@app.command()
def show(
    points: Optional[float] = typer.Option(
        None,
        "--points", "-p",
        help="Custom point count to value at each FDV",
    ),
    output: str = typer.Option(
        "table",
        "--output", "-o",
        help="Output format: table, json",
    ),
    program: Optional[Path] = typer.Option(
        None,
        "--program",
        help="Path to allocation program YAML file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """
    Fetch live data and show the valuation at each reference FDV.

    Examples:
        fdv-dashboard show
        fdv-dashboard show --points 10000
        fdv-dashboard show --output json
    """
    setup_logging(verbose)

    output_lower = output.lower()
    if output_lower not in ("table", "json"):
        console.print(f"[red]Invalid output format: {output}. Use table or json[/]")
        raise typer.Exit(1)
    if points is not None and points < 0:
        console.print("[red]--points must be non-negative[/]")
        raise typer.Exit(1)

    config = get_config()
    program_config = load_program_config(program or config.program_config_path)

    try:
        orchestrator = ComparisonOrchestrator(config=config, program=program_config)
        result = asyncio.run(orchestrator.run())
    except DashboardError as e:
        console.print(f"[red]Error: {e.message}[/]")
        raise typer.Exit(1)

    if output_lower == "json":
        print(JSONFormatter().format(result))
        return

    console.print(TableFormatter(custom_points=points).format(result))

    if points is not None:
        comparison = orchestrator.calculator.compare_custom_points(
            points, result.base_token.valuation.reference_fdv, result.tvl_ratio
        )
        console.print(
            f"{format_number(points)} points: "
            f"{format_currency(comparison.fdv_value)} at {result.base_token.reference.label} FDV, "
            f"{format_currency(comparison.tvl_value)} at TVL ratio "
            f"(difference {format_currency(comparison.difference)}, {comparison.higher} higher)"
        )
        if len(result.tokens) >= 2:
            first, second = result.tokens[0], result.tokens[1]
            by_token = orchestrator.calculator.compare_token_points(
                points,
                first.reference.label,
                first.valuation.reference_fdv,
                second.reference.label,
                second.valuation.reference_fdv,
            )
            console.print(
                f"{format_number(points)} points: "
                f"{format_currency(by_token.first_value)} at {by_token.first_label} FDV, "
                f"{format_currency(by_token.second_value)} at {by_token.second_label} FDV "
                f"(difference {format_currency(by_token.difference)}, {by_token.higher} higher, "
                f"average {format_currency(by_token.average)})"
            )


@app.command()
def report(
    output: Path = typer.Option(
        DEFAULT_OUTPUT,
        "--output", "-o",
        help="CSV file to write",
    ),
    program: Optional[Path] = typer.Option(
        None,
        "--program",
        help="Path to allocation program YAML file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Fetch live data once and write the CSV report."""
    setup_logging(verbose)

    config = get_config()
    program_config = load_program_config(program or config.program_config_path)

    try:
        path = asyncio.run(generate_report(output, config=config, program=program_config))
    except (DashboardError, OSError) as e:
        console.print(f"[red]Error generating CSV: {e}[/]")
        raise typer.Exit(1)

    console.print(f"[green]CSV file generated: {path}[/]")


@app.command()
def serve(
    port: Optional[int] = typer.Option(
        None,
        "--port",
        help="Port to listen on (default: PORT or 3001)",
    ),
    host: str = typer.Option(
        "0.0.0.0",
        "--host",
        help="Interface to bind",
    ),
) -> None:
    """Run the stats proxy and static dashboard server."""
    from ..server import run

    run(host=host, port=port)


@app.command()
def bonus(
    fdv: float = typer.Option(..., "--fdv", help="Assumed FDV in millions of USD"),
    deposit: float = typer.Option(..., "--deposit", help="Your deposit in USD"),
    tvl: float = typer.Option(..., "--tvl", help="Current TVL in USD"),
    program: Optional[Path] = typer.Option(
        None,
        "--program",
        help="Path to allocation program YAML file",
    ),
) -> None:
    """
    Estimate the bonus APR from the current phase's point emissions.

    Example:
        fdv-dashboard bonus --fdv 500 --deposit 10000 --tvl 20000000
    """
    program_config = load_program_config(program or get_config().program_config_path)
    if not program_config.phases:
        console.print("[red]Program has no point phases[/]")
        raise typer.Exit(1)

    phase = program_config.phases[-1]
    result = calc_bonus_apr(
        points_per_day=phase.points_per_day,
        assumed_fdv=fdv * 1_000_000,
        total_supply=program_config.total_supply,
        user_deposit=deposit,
        current_tvl=tvl,
    )

    table = Table(title=f"{program_config.name} Bonus APR ({phase.name})", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Bonus APR", f"{result.apr_percent:.2f}%")
    table.add_row("Yearly Bonus", format_currency(result.yearly_bonus))
    table.add_row("Points Value per Day", format_currency(result.points_value_per_day))
    table.add_row("Your Share per Day", format_currency(result.user_share_per_day))
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from .. import __version__
    console.print(f"FDV Comparison Dashboard v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
