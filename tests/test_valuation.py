"""Tests for valuation calculator module."""

import math

import pytest

from fdv_dashboard.calculator.valuation import (
    ValuationCalculator,
    calc_allocation_tokens,
    calc_allocation_value,
    calc_points_value,
    calc_token_price,
    calc_tvl_ratio,
)
from fdv_dashboard.core.exceptions import ValidationError
from fdv_dashboard.core.models import AllocationProgramConfig


def all_metrics(result) -> list[float]:
    """Every numeric metric of a ValuationResult."""
    values = [
        result.reference_fdv,
        result.implied_token_price,
        result.implied_market_cap,
        result.flat_allocation_value,
        result.point_program_allocation_value,
        result.total_allocation_value,
    ]
    for phase in result.phases:
        values.extend([phase.total_value, phase.value_per_point])
    return values


class TestValuationFormulas:
    """Tests for standalone valuation formulas."""

    def test_calc_token_price(self):
        """Token price = FDV / supply."""
        assert calc_token_price(1_000_000_000, 1_000_000_000) == 1.0
        assert calc_token_price(250_000_000, 1_000_000_000) == 0.25

    def test_calc_token_price_zero_supply(self):
        """A zero supply yields 0, not a ZeroDivisionError."""
        assert calc_token_price(1_000_000, 0) == 0.0

    def test_calc_allocation_value(self):
        """Allocation value = FDV × pct / 100."""
        assert calc_allocation_value(1_000_000_000, 0.5) == 5_000_000
        assert calc_allocation_value(0, 0.5) == 0

    def test_calc_allocation_tokens(self):
        assert calc_allocation_tokens(1_000_000_000, 0.5) == 5_000_000
        assert calc_allocation_tokens(1_000_000_000, 0.048333) == pytest.approx(483_330)

    def test_calc_points_value(self):
        """Points value = FDV × points / supply."""
        assert calc_points_value(4_650_000, 1_000_000_000, 1_000_000_000) == 4_650_000
        assert calc_points_value(10_000, 1_000_000_000, 1_000_000_000) == 10_000


class TestTvlRatio:
    """Tests for the TVL ratio and its zero-denominator guard."""

    def test_ratio(self):
        ratio = calc_tvl_ratio(32_779_544, 16_389_772)
        assert ratio.available
        assert ratio.ratio == 2.0
        assert ratio.percentage == 200.0
        assert ratio.difference == 16_389_772

    def test_zero_reference_is_unavailable(self):
        ratio = calc_tvl_ratio(32_779_544, 0)
        assert not ratio.available
        assert ratio.ratio == 0.0
        assert ratio.percentage == 0.0
        assert ratio.difference == 32_779_544

    def test_non_finite_inputs(self):
        ratio = calc_tvl_ratio(float("nan"), float("inf"))
        assert not ratio.available
        assert all(math.isfinite(v) for v in (ratio.ratio, ratio.difference, ratio.percentage))

    def test_negative_difference(self):
        ratio = calc_tvl_ratio(8_000_000, 16_000_000)
        assert ratio.ratio == 0.5
        assert ratio.difference == -8_000_000


class TestValuationCalculator:
    """Tests for ValuationCalculator class."""

    @pytest.fixture
    def calculator(self, program):
        return ValuationCalculator(program)

    def test_scenario_token_price_and_flat_allocation(self, calculator):
        """FDV 1B on 1B supply: $1 per token, 0.5% carve-out is $5M."""
        result = calculator.calculate(1_000_000_000)

        assert result.implied_token_price == pytest.approx(1.00)
        assert result.implied_market_cap == 1_000_000_000
        assert result.flat_allocation_value == pytest.approx(5_000_000.00)
        assert result.flat_allocation_tokens == 5_000_000
        assert not result.is_fallback

    def test_scenario_phase_value(self, calculator):
        """Phase of 4.65M points at $1 per token."""
        result = calculator.calculate(1_000_000_000)
        phase = result.phases[0]

        assert phase.name == "Phase 1"
        assert phase.total_value == pytest.approx(4_650_000.00)
        assert phase.value_per_point == pytest.approx(1.00)

    def test_scenario_tvl_scaled(self, calculator):
        """TVL ratio 2.0 doubles the flat allocation."""
        ratio = calc_tvl_ratio(32_779_544, 16_389_772)
        result = calculator.calculate_tvl_scaled(1_000_000_000, ratio)

        assert ratio.ratio == pytest.approx(2.0)
        assert result.reference_fdv == pytest.approx(2_000_000_000)
        assert result.flat_allocation_value == pytest.approx(10_000_000.00)

    def test_scenario_custom_points(self, calculator):
        assert calculator.custom_points_value(10_000, 1_000_000_000) == pytest.approx(10_000.00)

    @pytest.mark.parametrize("fdv", [0.0, 1.0, 12_345_678.9, 1_000_000_000, 3.7e12])
    def test_token_price_identity(self, calculator, program, fdv):
        """Price is FDV / supply and every phase's value per point equals it."""
        result = calculator.calculate(fdv)

        assert result.implied_token_price == pytest.approx(fdv / program.total_supply, rel=1e-9)
        for phase in result.phases:
            assert phase.value_per_point == pytest.approx(result.implied_token_price, rel=1e-9)

    @pytest.mark.parametrize("k", [0.0, 0.5, 2.0, 17.25])
    def test_linearity(self, calculator, k):
        """Scaling the FDV scales every value metric by the same factor."""
        base = calculator.calculate(400_000_000)
        scaled = calculator.calculate(k * 400_000_000)

        assert scaled.flat_allocation_value == pytest.approx(k * base.flat_allocation_value)
        assert scaled.point_program_allocation_value == pytest.approx(
            k * base.point_program_allocation_value
        )
        assert scaled.total_allocation_value == pytest.approx(k * base.total_allocation_value)
        for s, b in zip(scaled.phases, base.phases):
            assert s.total_value == pytest.approx(k * b.total_value)

    def test_tvl_scaling_matches_direct_substitution(self, calculator):
        """FDV × ratio goes through exactly the same formulas as a direct FDV."""
        ratio = calc_tvl_ratio(3_000_000, 2_000_000)
        scaled = calculator.calculate_tvl_scaled(800_000_000, ratio)
        direct = calculator.calculate(800_000_000 * 1.5)

        assert scaled == direct

    def test_zero_input(self, calculator):
        """FDV 0 gives all-zero, finite metrics."""
        result = calculator.calculate(0)

        assert all(v == 0 for v in all_metrics(result))
        assert not result.is_fallback

    @pytest.mark.parametrize("fdv", [None, float("nan"), float("inf")])
    def test_missing_fdv_is_zero_fallback(self, calculator, fdv):
        result = calculator.calculate(fdv)

        assert all(v == 0 for v in all_metrics(result))
        assert result.is_fallback

    def test_negative_fdv_rejected(self, calculator):
        with pytest.raises(ValidationError):
            calculator.calculate(-1)

    def test_unavailable_ratio_gives_zero_sentinel(self, calculator):
        """Zero reference TVL never produces NaN or Infinity."""
        ratio = calc_tvl_ratio(32_779_544, 0)
        result = calculator.calculate_tvl_scaled(1_000_000_000, ratio)

        assert all(math.isfinite(v) and v == 0 for v in all_metrics(result))
        assert result.is_fallback

    def test_total_allocation_value(self, calculator):
        """Total = flat + every phase, excluding the point program carve-out."""
        result = calculator.calculate(1_000_000_000)

        assert result.total_allocation_value == pytest.approx(
            5_000_000 + 4_650_000 + 12_987_000
        )
        assert result.per_phase_total_value == [p.total_value for p in result.phases]

    def test_deterministic(self, calculator):
        assert calculator.calculate(123_456_789.01) == calculator.calculate(123_456_789.01)

    def test_zero_point_phase(self):
        """A phase with no points has value per point 0."""
        program = AllocationProgramConfig(
            phases=[{"name": "Phase 0", "points_per_day": 0, "total_points": 0}]
        )
        result = ValuationCalculator(program).calculate(1_000_000_000)

        assert result.phases[0].total_value == 0
        assert result.phases[0].value_per_point == 0


class TestCustomPoints:
    """Tests for custom point queries."""

    @pytest.fixture
    def calculator(self, simple_program):
        return ValuationCalculator(simple_program)

    def test_negative_points_rejected(self, calculator):
        with pytest.raises(ValidationError):
            calculator.custom_points_value(-5, 1_000_000_000)

    def test_compare_custom_points_tvl_higher(self, calculator):
        ratio = calc_tvl_ratio(32_779_544, 16_389_772)
        comparison = calculator.compare_custom_points(10_000, 1_000_000_000, ratio)

        assert comparison.fdv_value == pytest.approx(10_000)
        assert comparison.tvl_value == pytest.approx(20_000)
        assert comparison.difference == pytest.approx(10_000)
        assert comparison.higher == "TVL"
        assert comparison.average == pytest.approx(15_000)

    def test_compare_custom_points_fdv_higher(self, calculator):
        ratio = calc_tvl_ratio(1_000_000, 4_000_000)
        comparison = calculator.compare_custom_points(10_000, 1_000_000_000, ratio)

        assert comparison.tvl_value == pytest.approx(2_500)
        assert comparison.higher == "FDV"

    def test_compare_without_ratio(self, calculator):
        ratio = calc_tvl_ratio(1_000_000, 0)
        comparison = calculator.compare_custom_points(10_000, 1_000_000_000, ratio)

        assert comparison.tvl_value == 0
        assert comparison.difference == pytest.approx(10_000)

    def test_compare_token_points(self, calculator):
        comparison = calculator.compare_token_points(
            10_000, "Giza", 1_000_000_000, "Newton", 500_000_000
        )

        assert comparison.first_value == pytest.approx(10_000)
        assert comparison.second_value == pytest.approx(5_000)
        assert comparison.difference == pytest.approx(5_000)
        assert comparison.higher == "Giza"
        assert comparison.average == pytest.approx(7_500)

    def test_compare_token_points_second_higher_on_tie(self, calculator):
        comparison = calculator.compare_token_points(10_000, "Giza", None, "Newton", 0)

        assert comparison.difference == 0
        assert comparison.higher == "Newton"
