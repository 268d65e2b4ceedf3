"""Almanak FDV Comparison Dashboard.

Fetches live token-market and TVL data, values the Almanak token-distribution
program against reference token FDVs and a TVL-scaled projection, and serves
the results as a dashboard, a CLI table and a CSV report.
"""

__version__ = "0.1.0"
