"""Market regime keys and the coarser runway buckets they map to."""

from __future__ import annotations

from typing import Literal

MarketRegime = Literal[
    "peak_hot",
    "peak_stable",
    "corr_young",
    "side_long",
    "recovery",
    "recovery_in_bear",
    "bear_deep",
]

RunwayRegime = Literal["bear", "recovery_in_bear", "recovery", "hot_neutral", "peak"]

MARKET_REGIMES: tuple[str, ...] = (
    "peak_hot",
    "peak_stable",
    "corr_young",
    "side_long",
    "recovery",
    "recovery_in_bear",
    "bear_deep",
)

DEFAULT_REGIME_MAP: dict[str, str] = {
    "peak_hot": "peak",
    "peak_stable": "hot_neutral",
    "side_long": "hot_neutral",
    "recovery": "recovery",
    "corr_young": "recovery",
    "bear_deep": "bear",
    "recovery_in_bear": "recovery_in_bear",
}

# Higher rank = calmer market.
RUNWAY_RANK: dict[str, int] = {
    "bear": 0,
    "recovery_in_bear": 1,
    "recovery": 2,
    "hot_neutral": 3,
    "peak": 4,
}

# Regimes in which a lingering alarm may be cleared by the "calm market" rule.
CALM_REGIMES: frozenset[str] = frozenset({"peak_hot", "peak_stable", "side_long"})


def regime_rank(regime: str | None, regime_map: dict[str, str]) -> int:
    """Rank of a market regime's runway bucket, -1 when unknown or missing."""
    if not regime:
        return -1
    return RUNWAY_RANK.get(regime_map.get(regime, ""), -1)
