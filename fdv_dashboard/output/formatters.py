"""Output formatters for comparison results.

Provides multiple output formats:
- CSV: Flat sectioned report for spreadsheets
- JSON: Machine-readable, complete data
- Table: Human-readable CLI output
"""

import csv
import io
import math
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Context, Decimal
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..calculator.valuation import ValuationCalculator
from ..core.models import ComparisonResult, TokenValuation, ValuationResult
from ..core.types import FetchSlot

Row = list[str]


def _finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def _round_half_up(value: float, places: int) -> Decimal:
    """Round the exact binary value half away from zero, as browsers format numbers."""
    return Decimal(value).quantize(
        Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP, context=Context(prec=400)
    )


def format_currency(value: float | None) -> str:
    """Format as ``$#,##0.00``. Missing values render as ``$0.00``."""
    if not _finite(value):
        return "$0.00"
    amount = _round_half_up(value, 2)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_number(value: float | None) -> str:
    """Format with thousands separators and up to 3 decimals."""
    if not _finite(value):
        return "0"
    text = f"{_round_half_up(value, 3):,.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_plain(value: float) -> str:
    """Shortest plain rendering of a number: ``0.5``, ``1``, ``0.048333``."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_percent(value: float | None, decimals: int = 2) -> str:
    """Fixed-decimal percentage with a trailing ``%``."""
    if not _finite(value):
        return "0%"
    return f"{_round_half_up(value, decimals):.{decimals}f}%"


def humanize_count(value: float) -> str:
    """Spell out round counts: ``1 billion``, ``5 million``, else ``483,330``."""
    for divisor, word in ((1_000_000_000, "billion"), (1_000_000, "million")):
        if value and value % divisor == 0:
            return f"{format_number(value / divisor)} {word}"
    return format_number(value)


def parse_currency(text: str) -> float:
    """Inverse of ``format_currency``."""
    return float(text.replace("$", "").replace(",", ""))


class OutputFormatter(ABC):
    """Abstract base class for output formatters."""

    @abstractmethod
    def format(self, result: ComparisonResult) -> str:
        """Format the result as a string."""
        pass

    def format_to_file(self, result: ComparisonResult, filepath: str | Path) -> None:
        """Write formatted result to a file."""
        with open(filepath, "w", encoding="utf-8", newline="") as f:
            f.write(self.format(result))


class CSVReportFormatter(OutputFormatter):
    """Formats a comparison as the sectioned CSV report.

    Each section is a header row followed by ``label,value[,note]`` rows;
    sections are separated by one blank line.
    """

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def format(self, result: ComparisonResult) -> str:
        """Format result as CSV string."""
        output = io.StringIO()
        writer = csv.writer(output, delimiter=self.delimiter, lineterminator="\n")

        for i, section in enumerate(self.sections(result)):
            if i:
                writer.writerow([])
            writer.writerows(section)

        return output.getvalue()

    def sections(self, result: ComparisonResult) -> list[list[Row]]:
        """All report sections in file order."""
        return [
            self._token_information(result),
            self._allocation_parameters(result),
            *[self._fdv_comparison(result, token) for token in result.tokens],
            self._tvl_analysis(result),
            self._allocation_summary(result),
            self._key_insights(result),
            self._generation_info(result),
        ]

    def _token_information(self, result: ComparisonResult) -> list[Row]:
        program = result.program
        rows: list[Row] = [["Token Information", "Value", "Notes"]]

        for token in result.tokens:
            label = token.reference.label
            snap = token.snapshot
            change = snap.price_change_percentage_24h if snap else None
            rank = snap.market_cap_rank if snap else None
            rows.extend([
                [f"{label} Token Symbol", token.symbol, ""],
                [f"{label} Token Name", token.name, ""],
                [f"{label} Current Price", format_currency(snap.current_price if snap else None), ""],
                [f"{label} Market Cap", format_currency(snap.market_cap if snap else None), ""],
                [f"{label} FDV", format_currency(snap.fully_diluted_valuation if snap else None), ""],
                [f"{label} Total Supply", format_number(snap.total_supply if snap else None), ""],
                [f"{label} Circulating Supply", format_number(snap.circulating_supply if snap else None), ""],
                [f"{label} 24h Price Change", f"{change:.2f}%" if _finite(change) else "0%", ""],
                [f"{label} Market Cap Rank", str(rank or 0), ""],
            ])

        reference_note = "Fixed value" if result.reference_tvl_is_fixed else (
            f"{result.reference_tvl.component_a_label} + {result.reference_tvl.component_b_label}"
        )
        rows.extend([
            [
                f"{program.name} Total Supply",
                format_number(program.total_supply),
                f"{humanize_count(program.total_supply)} tokens",
            ],
            [f"{result.reference_tvl.label} TVL", format_currency(result.reference_tvl_total), reference_note],
            [
                f"{result.subject_tvl.label} TVL",
                format_currency(result.subject_tvl.total),
                "From DefiLlama API and USDC balance",
            ],
        ])
        return rows

    def _allocation_parameters(self, result: ComparisonResult) -> list[Row]:
        program = result.program
        valuation = result.base_token.valuation
        supply_words = humanize_count(program.total_supply)

        rows: list[Row] = [["Allocation Parameters", "Value", "Percentage", "Notes"]]
        rows.append([
            f"{program.flat_allocation_label} Allocation",
            format_number(valuation.flat_allocation_tokens),
            f"{format_plain(program.flat_allocation_percent)}%",
            f"{humanize_count(valuation.flat_allocation_tokens)} tokens out of {supply_words}",
        ])
        rows.append([
            "Point Program Tokens",
            format_number(valuation.point_program_tokens),
            f"{format_plain(program.point_program_percent)}%",
            f"{humanize_count(valuation.point_program_tokens)} tokens out of {supply_words}",
        ])
        for phase in program.phases:
            rows.append([
                f"{phase.name} Points Per Day",
                format_number(phase.points_per_day),
                "",
                f"{format_number(phase.points_per_day)} points per day",
            ])
            rows.append([
                f"{phase.name} Total Points",
                format_number(phase.total_points),
                "",
                f"{format_number(phase.total_points)} total points",
            ])
        return rows

    def _fdv_comparison(self, result: ComparisonResult, token: TokenValuation) -> list[Row]:
        program = result.program
        label = token.reference.label
        name = program.name
        flat = program.flat_allocation_label
        flat_pct = format_plain(program.flat_allocation_percent)
        v = token.valuation

        rows: list[Row] = [
            [f"{label} FDV Comparison", "Value", "Calculation"],
            [f"{name} FDV at {label} FDV", format_currency(v.reference_fdv), f"Equals {label} FDV"],
            [
                f"{name} Token Price at {label} FDV",
                format_currency(v.implied_token_price),
                f"{label} FDV / {name} Supply",
            ],
            [f"{name} Market Cap at {label} FDV", format_currency(v.implied_market_cap), f"Equals {label} FDV"],
            [f"{flat} Allocation Value", format_currency(v.flat_allocation_value), f"{label} FDV * {flat_pct}%"],
            [f"{flat} Tokens", format_number(v.flat_allocation_tokens), f"{name} Supply * {flat_pct}%"],
            [
                "Point Program Allocation Value",
                format_currency(v.point_program_allocation_value),
                f"{label} FDV * {format_plain(program.point_program_percent)}%",
            ],
        ]
        for phase in v.phases:
            rows.append([
                f"{phase.name} Total Value",
                format_currency(phase.total_value),
                f"{label} FDV * {phase.name} Points / {name} Supply",
            ])
        for phase in v.phases:
            rows.append([
                f"{phase.name} Value per Point",
                format_currency(phase.value_per_point),
                f"{phase.name} Total Value / {phase.name} Total Points",
            ])
        return rows

    def _tvl_analysis(self, result: ComparisonResult) -> list[Row]:
        program = result.program
        subject = result.subject_tvl.label
        reference = result.reference_tvl.label
        base = result.base_token.reference.label
        ratio = result.tvl_ratio
        scaled = result.tvl_scaled

        rows: list[Row] = [
            ["TVL Analysis", "Value", "Calculation"],
            ["TVL Ratio", f"{ratio.ratio:.4f}", f"{subject} TVL / {reference} TVL"],
            ["TVL Difference", format_currency(ratio.difference), f"{subject} TVL - {reference} TVL"],
            ["TVL Percentage", format_percent(ratio.percentage), f"({subject} TVL / {reference} TVL) * 100"],
            [
                f"{program.flat_allocation_label} Value (TVL Based)",
                format_currency(scaled.flat_allocation_value),
                f"{base} FDV * TVL Ratio * {format_plain(program.flat_allocation_percent)}%",
            ],
        ]
        for phase in scaled.phases:
            rows.append([
                f"{phase.name} Value (TVL Based)",
                format_currency(phase.total_value),
                f"{base} FDV * TVL Ratio * {phase.name} Points / {program.name} Supply",
            ])
        return rows

    def _allocation_summary(self, result: ComparisonResult) -> list[Row]:
        valuations: list[ValuationResult] = [t.valuation for t in result.tokens] + [result.tvl_scaled]
        header = ["Total Allocation Summary", "Category"]
        header += [f"Value at {t.reference.label} FDV" for t in result.tokens]
        header.append("Value at TVL Ratio")

        # Rows are one cell shorter than the header
        rows: list[Row] = [header]
        rows.append(
            [f"{result.program.flat_allocation_label} Allocation"]
            + [format_currency(v.flat_allocation_value) for v in valuations]
        )
        for i, phase in enumerate(result.program.phases):
            rows.append(
                [f"{phase.name} Points"]
                + [format_currency(v.phases[i].total_value) for v in valuations]
            )
        rows.append(
            ["Total Allocation Value"]
            + [format_currency(v.total_allocation_value) for v in valuations]
        )
        return rows

    def _key_insights(self, result: ComparisonResult) -> list[Row]:
        program = result.program
        flat = program.flat_allocation_label
        tokens = result.tokens

        rows: list[Row] = [["Key Insights", "Description", "Value"]]
        for t in tokens:
            rows.append([
                f"{program.name} vs {t.reference.label} FDV",
                "Comparison",
                format_currency(t.valuation.reference_fdv),
            ])
        for t in tokens:
            rows.append([
                f"Token Price at {t.reference.label} FDV",
                "Price per token",
                format_currency(t.valuation.implied_token_price),
            ])
        for t in tokens:
            rows.append([
                f"{flat} Value at {t.reference.label} FDV",
                "Allocation value",
                format_currency(t.valuation.flat_allocation_value),
            ])
        for i, phase in enumerate(program.phases):
            for t in tokens:
                rows.append([
                    f"{phase.name} Points Value at {t.reference.label} FDV",
                    "Points value",
                    format_currency(t.valuation.phases[i].total_value),
                ])
        for t in tokens:
            rows.append([
                f"Total Allocation Value at {t.reference.label} FDV",
                "Combined value",
                format_currency(t.valuation.total_allocation_value),
            ])
        return rows

    def _generation_info(self, result: ComparisonResult) -> list[Row]:
        generated_at = result.generated_at.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        rows: list[Row] = [
            ["Data Generation Info", "Value", "Notes"],
            ["Generated At", generated_at, "Timestamp"],
            ["Data Source", "CoinGecko & DefiLlama APIs", "Live data"],
        ]
        for t in result.tokens:
            rows.append([
                f"{t.reference.label} API Status",
                "Success" if t.fetch_ok else "Failed",
                "Data fetch status",
            ])
        rows.append([
            f"{result.subject_tvl.label} TVL API Status",
            "Success" if result.subject_tvl_ok else "Failed",
            "Data fetch status",
        ])
        return rows


class JSONFormatter(OutputFormatter):
    """Formats results as JSON."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def format(self, result: ComparisonResult) -> str:
        """Format result as JSON string."""
        return result.model_dump_json(indent=self.indent)


class TableFormatter(OutputFormatter):
    """Formats results as human-readable tables for CLI output."""

    def __init__(self, width: int = 110, custom_points: float | None = None):
        """
        Initialize table formatter.

        Args:
            width: Maximum table width
            custom_points: Optional point count valued at each FDV
        """
        self.width = width
        self.custom_points = custom_points
        self.color = True

    def format(self, result: ComparisonResult) -> str:
        """Format result as readable tables."""
        output = io.StringIO()
        console = Console(
            file=output,
            force_terminal=self.color,
            no_color=not self.color,
            width=self.width,
        )
        program = result.program

        console.print(Panel(
            f"[bold cyan]{program.name}[/] allocation valued at "
            + ", ".join(f"{t.reference.label} ({t.symbol})" for t in result.tokens)
            + f"\n[dim]Generated {result.generated_at.strftime('%Y-%m-%d %H:%M UTC')}[/]",
            title="FDV Comparison",
            expand=False,
        ))

        market_table = Table(title="Reference Tokens")
        market_table.add_column("Token", style="cyan")
        market_table.add_column("Price", justify="right")
        market_table.add_column("Market Cap", justify="right")
        market_table.add_column("FDV", justify="right", style="green")
        market_table.add_column("24h", justify="right")
        market_table.add_column("Status")
        for t in result.tokens:
            snap = t.snapshot
            if snap is None:
                market_table.add_row(t.reference.label, "-", "-", "-", "-", "[red]Failed[/]")
                continue
            market_table.add_row(
                f"{t.name} ({t.symbol})",
                format_currency(snap.current_price),
                format_currency(snap.market_cap),
                format_currency(snap.fully_diluted_valuation),
                format_percent(snap.price_change_percentage_24h),
                "[green]OK[/]",
            )
        console.print(market_table)

        columns = [(f"at {t.reference.label} FDV", t.valuation) for t in result.tokens]
        columns.append(("at TVL Ratio", result.tvl_scaled))

        val_table = Table(title=f"{program.name} Valuation")
        val_table.add_column("Metric", style="cyan")
        for heading, _ in columns:
            val_table.add_column(heading, justify="right", style="green")

        def add(metric: str, values: list[str]) -> None:
            val_table.add_row(metric, *values)

        add("Effective FDV", [format_currency(v.reference_fdv) for _, v in columns])
        add("Token Price", [format_currency(v.implied_token_price) for _, v in columns])
        add(
            f"{program.flat_allocation_label} Allocation",
            [format_currency(v.flat_allocation_value) for _, v in columns],
        )
        add(
            "Point Program Allocation",
            [format_currency(v.point_program_allocation_value) for _, v in columns],
        )
        for i, phase in enumerate(program.phases):
            add(
                f"{phase.name} ({format_number(phase.total_points)} pts)",
                [format_currency(v.phases[i].total_value) for _, v in columns],
            )
        if self.custom_points is not None:
            calculator = ValuationCalculator(program)
            add(
                f"Custom ({format_number(self.custom_points)} pts)",
                [
                    format_currency(
                        calculator.custom_points_value(self.custom_points, v.reference_fdv)
                    )
                    for _, v in columns
                ],
            )
        add(
            "[bold]Total Allocation[/]",
            [f"[bold]{format_currency(v.total_allocation_value)}[/]" for _, v in columns],
        )
        console.print(val_table)

        ratio = result.tvl_ratio
        tvl_table = Table(title="TVL", show_header=False)
        tvl_table.add_column("Field", style="cyan")
        tvl_table.add_column("Value", justify="right", style="green")
        for tvl in (result.subject_tvl, result.reference_tvl):
            tvl_table.add_row(f"{tvl.label} {tvl.component_a_label}", format_currency(tvl.component_a))
            tvl_table.add_row(f"{tvl.label} {tvl.component_b_label}", format_currency(tvl.component_b))
        fixed = " [yellow](fixed)[/]" if result.reference_tvl_is_fixed else ""
        tvl_table.add_row(f"{result.subject_tvl.label} Total", format_currency(result.subject_tvl.total))
        tvl_table.add_row(
            f"{result.reference_tvl.label} Total",
            format_currency(result.reference_tvl_total) + fixed,
        )
        tvl_table.add_row("Ratio", f"{ratio.ratio:.4f}" if ratio.available else "[yellow]N/A[/]")
        tvl_table.add_row("Difference", format_currency(ratio.difference))
        console.print(tvl_table)

        failed = [s for s in result.statuses if not s.success]
        if failed:
            console.print("\n[bold yellow]Fallbacks used:[/]")
            for status in failed:
                target = status.key if status.slot == FetchSlot.TOKEN else status.slot.value
                console.print(f"  [!] {target}: {status.error_message}")

        return output.getvalue()

    def format_to_file(self, result: ComparisonResult, filepath: str | Path) -> None:
        """Write formatted output to file."""
        # For file output, drop ANSI codes
        old_color = self.color
        self.color = False
        try:
            content = self.format(result)
        finally:
            self.color = old_color

        with open(filepath, "w", encoding="utf-8") as f:
            f.write(content)
