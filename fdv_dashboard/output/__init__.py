"""Output formatting module."""

from .formatters import (
    CSVReportFormatter,
    JSONFormatter,
    OutputFormatter,
    TableFormatter,
    format_currency,
    format_number,
)

__all__ = [
    "OutputFormatter",
    "CSVReportFormatter",
    "JSONFormatter",
    "TableFormatter",
    "format_currency",
    "format_number",
]
