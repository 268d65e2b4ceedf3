"""Bonus APR calculator for depositors earning point emissions.

A depositor's share of the daily point emission is proportional to their
share of the current TVL. Valuing those points at an assumed FDV gives a
daily bonus, annualized against the deposit.
"""

from ..core.models import BonusAprResult

DAYS_PER_YEAR = 365


def calc_bonus_apr(
    points_per_day: float,
    assumed_fdv: float,
    total_supply: float,
    user_deposit: float,
    current_tvl: float,
) -> BonusAprResult:
    """
    Calculate the bonus APR from point emissions.

    Formulas:
        points_value_per_day = points_per_day × assumed_fdv / total_supply
        user_share_per_day = user_deposit / current_tvl × points_value_per_day
        apr = user_share_per_day × 365 / user_deposit × 100
        yearly_bonus = user_deposit × apr / 100

    Args:
        points_per_day: Points emitted per day by the active phase
        assumed_fdv: Assumed FDV in USD
        total_supply: Total token supply
        user_deposit: Deposit in USD
        current_tvl: Current TVL in USD

    Returns:
        BonusAprResult; all zeros when any input is not positive
    """
    if min(points_per_day, assumed_fdv, total_supply, user_deposit, current_tvl) <= 0:
        return BonusAprResult()

    points_value_per_day = points_per_day * assumed_fdv / total_supply
    user_share_per_day = user_deposit / current_tvl * points_value_per_day
    apr = user_share_per_day * DAYS_PER_YEAR / user_deposit * 100

    return BonusAprResult(
        apr_percent=apr,
        yearly_bonus=user_deposit * apr / 100,
        points_value_per_day=points_value_per_day,
        user_share_per_day=user_share_per_day,
    )
