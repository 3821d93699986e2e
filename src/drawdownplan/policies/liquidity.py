"""Liquidity target model: how much cash the household should hold."""

from __future__ import annotations

import math

from drawdownplan.config.schema import RiskProfile
from drawdownplan.market.classifier import MarketAssessment


def target_liquidity(
    profile: RiskProfile,
    assessment: MarketAssessment,
    floor_budget: float,
    flex_budget: float,
) -> float:
    """Target liquid reserve for the current regime.

    Static profiles hold two years of floor + flex spending. Dynamic profiles
    hold ``target months`` of an adjustable monthly need: the full budget in
    peak or hot-neutral markets, floor plus half the flex budget otherwise.

    Args:
        profile: Risk profile with the runway table.
        assessment: Current market assessment.
        floor_budget: Annual floor spending.
        flex_budget: Annual flex spending.

    Returns:
        Target liquidity in currency units.
    """
    if not profile.is_dynamic:
        return (floor_budget + flex_budget) * 2.0

    bucket = assessment.runway_regime
    months = profile.target_runway_months(bucket)
    if bucket in ("peak", "hot_neutral"):
        adjustable_need = floor_budget + flex_budget
    else:
        adjustable_need = floor_budget + 0.5 * flex_budget
    return max(1.0, adjustable_need) / 12.0 * months


def runway_months(liquidity: float, floor_budget: float, flex_budget: float) -> float:
    """Months of floor + flex spending the liquid reserve covers.

    Returns ``inf`` when there is nothing to spend.
    """
    monthly_need = (floor_budget + flex_budget) / 12.0
    if monthly_need <= 0:
        return math.inf
    return max(0.0, liquidity) / monthly_need
