"""CLI module for the FDV comparison dashboard."""
