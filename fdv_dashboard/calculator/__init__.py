"""Valuation calculation module."""

from .bonus import calc_bonus_apr
from .valuation import ValuationCalculator, calc_tvl_ratio

__all__ = ["ValuationCalculator", "calc_bonus_apr", "calc_tvl_ratio"]
