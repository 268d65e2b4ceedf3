"""Valuation calculator for the allocation program.

All metrics are linear functions of one effective FDV:
- Token Price = FDV / total_supply
- Allocation Value = FDV × allocation_pct / 100
- Phase Value = FDV × phase_points / total_supply
- TVL-scaled metrics use FDV × (subject_tvl / reference_tvl) as the FDV

Missing inputs are treated as 0 so that every metric is a finite number.
"""

import logging
import math

from ..core.exceptions import ValidationError
from ..core.models import (
    AllocationProgramConfig,
    CustomPointsComparison,
    PhaseValuation,
    TokenPointsComparison,
    TvlRatio,
    ValuationResult,
)

logger = logging.getLogger(__name__)


def _safe_div(numerator: float, denominator: float) -> float:
    """Divide, returning 0.0 instead of NaN/Infinity for a zero denominator."""
    if not denominator:
        return 0.0
    return numerator / denominator


def _normalize_fdv(reference_fdv: float | None) -> tuple[float, bool]:
    """Return (fdv, is_fallback), substituting 0 for missing or non-finite values."""
    if reference_fdv is None or not math.isfinite(reference_fdv):
        return 0.0, True
    if reference_fdv < 0:
        raise ValidationError("reference_fdv", str(reference_fdv), "must be >= 0")
    return float(reference_fdv), False


class ValuationCalculator:
    """Calculates program metrics from an effective FDV."""

    def __init__(self, program: AllocationProgramConfig | None = None):
        self.program = program or AllocationProgramConfig()

    def calculate(self, reference_fdv: float | None) -> ValuationResult:
        """
        Calculate program metrics at a reference FDV.

        Args:
            reference_fdv: FDV in USD. None or non-finite values count as 0.

        Returns:
            ValuationResult with all derived metrics
        """
        fdv, is_fallback = _normalize_fdv(reference_fdv)
        return self._calculate(fdv, is_fallback)

    def calculate_tvl_scaled(
        self,
        reference_fdv: float | None,
        tvl_ratio: TvlRatio,
    ) -> ValuationResult:
        """
        Calculate program metrics at FDV × TVL ratio.

        An unavailable ratio scales by the 0.0 sentinel and flags the result.
        """
        fdv, is_fallback = _normalize_fdv(reference_fdv)
        if not tvl_ratio.available:
            logger.debug("TVL ratio unavailable, scaling FDV by 0")
            return self._calculate(0.0, True)
        return self._calculate(fdv * tvl_ratio.ratio, is_fallback)

    def _calculate(self, fdv: float, is_fallback: bool) -> ValuationResult:
        program = self.program
        supply = program.total_supply

        phases = []
        for phase in program.phases:
            total_value = calc_points_value(phase.total_points, fdv, supply)
            phases.append(
                PhaseValuation(
                    name=phase.name,
                    points_per_day=phase.points_per_day,
                    total_points=phase.total_points,
                    total_value=total_value,
                    value_per_point=_safe_div(total_value, phase.total_points),
                )
            )

        flat_value = calc_allocation_value(fdv, program.flat_allocation_percent)

        return ValuationResult(
            reference_fdv=fdv,
            implied_token_price=calc_token_price(fdv, supply),
            implied_market_cap=fdv,
            flat_allocation_value=flat_value,
            flat_allocation_tokens=calc_allocation_tokens(
                supply, program.flat_allocation_percent
            ),
            point_program_allocation_value=calc_allocation_value(
                fdv, program.point_program_percent
            ),
            point_program_tokens=calc_allocation_tokens(
                supply, program.point_program_percent
            ),
            phases=phases,
            total_allocation_value=flat_value + sum(p.total_value for p in phases),
            is_fallback=is_fallback,
        )

    def custom_points_value(self, points: float, reference_fdv: float | None) -> float:
        """Value of an arbitrary point count at a reference FDV."""
        if points < 0:
            raise ValidationError("points", str(points), "must be >= 0")
        fdv, _ = _normalize_fdv(reference_fdv)
        return calc_points_value(points, fdv, self.program.total_supply)

    def compare_custom_points(
        self,
        points: float,
        reference_fdv: float | None,
        tvl_ratio: TvlRatio,
    ) -> CustomPointsComparison:
        """
        Value a point count at the reference FDV and at the TVL-scaled FDV.

        Returns:
            CustomPointsComparison with both values, their absolute
            difference, which one is higher and their average
        """
        fdv_value = self.custom_points_value(points, reference_fdv)
        fdv, _ = _normalize_fdv(reference_fdv)
        scaled_fdv = fdv * tvl_ratio.ratio if tvl_ratio.available else 0.0
        tvl_value = self.custom_points_value(points, scaled_fdv)

        return CustomPointsComparison(
            points=points,
            fdv_value=fdv_value,
            tvl_value=tvl_value,
            difference=abs(fdv_value - tvl_value),
            higher="FDV" if fdv_value > tvl_value else "TVL",
            average=(fdv_value + tvl_value) / 2,
        )

    def compare_token_points(
        self,
        points: float,
        first_label: str,
        first_fdv: float | None,
        second_label: str,
        second_fdv: float | None,
    ) -> TokenPointsComparison:
        """Value a point count at two reference tokens' FDVs side by side."""
        first_value = self.custom_points_value(points, first_fdv)
        second_value = self.custom_points_value(points, second_fdv)

        return TokenPointsComparison(
            points=points,
            first_label=first_label,
            first_value=first_value,
            second_label=second_label,
            second_value=second_value,
            difference=abs(first_value - second_value),
            higher=first_label if first_value > second_value else second_label,
            average=(first_value + second_value) / 2,
        )


def calc_token_price(fdv: float, total_supply: float) -> float:
    """
    Calculate the implied token price.

    Formula: price = FDV / total_supply
    """
    return _safe_div(fdv, total_supply)


def calc_allocation_value(fdv: float, allocation_pct: float) -> float:
    """
    Calculate the USD value of a percentage carve-out.

    Formula: value = FDV × allocation_pct / 100
    """
    return fdv * allocation_pct / 100


def calc_allocation_tokens(total_supply: float, allocation_pct: float) -> float:
    """
    Calculate the token amount of a percentage carve-out.

    Formula: tokens = total_supply × allocation_pct / 100
    """
    return total_supply * allocation_pct / 100


def calc_points_value(points: float, fdv: float, total_supply: float) -> float:
    """
    Calculate the USD value of a number of points.

    One point converts to one token, so this is points × token price.

    Formula: value = FDV × points / total_supply
    """
    return _safe_div(fdv * points, total_supply)


def calc_tvl_ratio(subject_tvl: float, reference_tvl: float) -> TvlRatio:
    """
    Calculate the TVL ratio used to project the subject's FDV.

    Formula: ratio = subject_tvl / reference_tvl

    Args:
        subject_tvl: TVL of the protocol being valued
        reference_tvl: TVL of the reference protocol

    Returns:
        TvlRatio. When reference_tvl is not positive the ratio and
        percentage are 0.0 and ``available`` is False.
    """
    subject_tvl = subject_tvl if math.isfinite(subject_tvl) else 0.0
    reference_tvl = reference_tvl if math.isfinite(reference_tvl) else 0.0

    if reference_tvl <= 0:
        return TvlRatio(
            subject_tvl=subject_tvl,
            reference_tvl=reference_tvl,
            ratio=0.0,
            difference=subject_tvl - reference_tvl,
            percentage=0.0,
            available=False,
        )

    ratio = subject_tvl / reference_tvl
    return TvlRatio(
        subject_tvl=subject_tvl,
        reference_tvl=reference_tvl,
        ratio=ratio,
        difference=subject_tvl - reference_tvl,
        percentage=ratio * 100,
        available=True,
    )
