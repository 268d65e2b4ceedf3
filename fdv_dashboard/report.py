"""One-shot CSV report generator.

Fetches everything once, runs the valuation engine and writes the sectioned
CSV report.

Usage:
    python -m fdv_dashboard.report [output.csv]
"""

import asyncio
import logging
import sys
from pathlib import Path

from .core.config import AppConfig, get_config
from .core.models import AllocationProgramConfig, ComparisonResult
from .orchestrator import ComparisonOrchestrator
from .output.formatters import CSVReportFormatter, format_currency

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = Path("almanak_live_data.csv")


async def build_report(
    config: AppConfig | None = None,
    program: AllocationProgramConfig | None = None,
    orchestrator: ComparisonOrchestrator | None = None,
) -> ComparisonResult:
    """Run one fetch-and-value pass for the report."""
    orchestrator = orchestrator or ComparisonOrchestrator(config=config, program=program)
    return await orchestrator.run()


async def generate_report(
    output_path: Path | str = DEFAULT_OUTPUT,
    config: AppConfig | None = None,
    program: AllocationProgramConfig | None = None,
    orchestrator: ComparisonOrchestrator | None = None,
) -> Path:
    """
    Fetch live data and write the CSV report.

    Args:
        output_path: Destination file
        config: Runtime configuration (global config if not provided)
        program: Allocation program constants
        orchestrator: Pre-built orchestrator (overrides config/program)

    Returns:
        Path of the written report
    """
    logger.info("Fetching live data from APIs...")
    result = await build_report(config, program, orchestrator)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    CSVReportFormatter().format_to_file(result, output_path)

    logger.info(f"CSV report written to {output_path}")
    for token in result.tokens:
        fdv = token.snapshot.fully_diluted_valuation if token.snapshot else None
        logger.info(f"{token.reference.label} FDV: {format_currency(fdv) if fdv else 'N/A'}")
    logger.info(f"{result.subject_tvl.label} TVL: {format_currency(result.subject_tvl.total)}")

    return output_path


def main() -> None:
    """Generate the report to the path given on the command line."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    output = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_OUTPUT
    asyncio.run(generate_report(output))


if __name__ == "__main__":
    main()
