"""Rule-based market regime classifier."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from drawdownplan.config.schema import EngineConfig, MarketObservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MarketAssessment:
    """Regime classification for one period.

    Attributes:
        regime: Market regime key (see ``market.regimes.MarketRegime``).
        runway_regime: Coarser bucket used for runway targets and ranking.
        ath_gap_pct: Distance of the latest close below the all-time high, percent.
        perf_1y_pct: Trailing one-year performance, percent.
        is_stagflation: High inflation with negative real one-year return.
        scenario_text: Display label for the regime.
        reasons: Human-readable reasons for the classification.
        observation: The readings the assessment was derived from.
    """

    regime: str
    runway_regime: str
    ath_gap_pct: float
    perf_1y_pct: float
    is_stagflation: bool
    scenario_text: str
    reasons: tuple[str, ...]
    observation: MarketObservation


def ath_gap_pct(obs: MarketObservation) -> float:
    """Percent below the all-time high; 0 when either value is not positive."""
    if obs.ath <= 0 or obs.year_end <= 0:
        return 0.0
    return (obs.ath - obs.year_end) / obs.ath * 100.0


def perf_1y_pct(obs: MarketObservation) -> float:
    """Trailing one-year performance in percent; 0 without a positive prior close."""
    if obs.year_end_1 <= 0:
        return 0.0
    return (obs.year_end - obs.year_end_1) / obs.year_end_1 * 100.0


def rally_from_low_pct(obs: MarketObservation) -> float:
    """Rally of the latest close above the lowest of the last four year-ends."""
    closes = [
        v for v in (obs.year_end, obs.year_end_1, obs.year_end_2, obs.year_end_3) if v > 0
    ]
    if not closes:
        return 0.0
    low = min(closes)
    return (obs.year_end - low) / low * 100.0


def classify(obs: MarketObservation, config: EngineConfig) -> MarketAssessment:
    """Classify the market regime for one period.

    Rules are checked in priority order and the first match wins:

    1. At or above the ATH: ``peak_hot`` with >= 10% momentum, else ``peak_stable``.
    2. More than 20% below the ATH: ``bear_deep``.
    3. 10-20% below, > 10% momentum and the ATH older than 6 months: ``recovery``.
    4. Up to 15% below and the ATH at most 6 months old: ``corr_young``.
    5. Otherwise ``side_long``.

    A ``bear_deep`` or ``recovery`` with a strong bounce (>= 15% over one year
    or >= 30% off the four-year low) while still > 15% below the ATH becomes
    ``recovery_in_bear``.
    """
    gap = ath_gap_pct(obs)
    perf = perf_1y_pct(obs)
    months_since_ath = obs.years_since_ath * 12
    if gap > 0 and obs.years_since_ath == 0:
        months_since_ath = 12

    reasons: list[str] = []
    if gap <= 0:
        regime = "peak_hot" if perf >= 10 else "peak_stable"
        reasons.append("New all-time high")
        if perf >= 10:
            reasons.append("Strong momentum (>10%)")
    elif gap > 20:
        regime = "bear_deep"
        reasons.append(f"ATH gap > 20% ({gap:.1f}%)")
    elif gap > 10 and perf > 10 and months_since_ath > 6:
        regime = "recovery"
        reasons.append("Strong momentum after correction")
    elif gap <= 15 and months_since_ath <= 6:
        regime = "corr_young"
        reasons.append("Recent, mild correction")
    else:
        regime = "side_long"
        reasons.append("Sideways phase")

    if regime in ("bear_deep", "recovery"):
        rally = rally_from_low_pct(obs)
        if (perf >= 15 or rally >= 30) and gap > 15:
            regime = "recovery_in_bear"
            reasons.append(
                f"Recovery within bear market (1y perf: {perf:.0f}%, rally from low: {rally:.0f}%)"
            )

    real_1y = perf - obs.inflation
    is_stagflation = obs.inflation >= config.stagflation_inflation_threshold and real_1y < 0
    if is_stagflation:
        reasons.append(
            f"Stagflation (inflation {obs.inflation:g}% > real return {real_1y:.1f}%)"
        )

    scenario_text = config.scenario_text.get(regime, "Unknown")
    if is_stagflation:
        scenario_text += " (stagflation)"

    logger.debug("Classified market as %s (gap=%.1f%%, perf=%.1f%%)", regime, gap, perf)
    return MarketAssessment(
        regime=regime,
        runway_regime=config.runway_regime(regime),
        ath_gap_pct=gap,
        perf_1y_pct=perf,
        is_stagflation=is_stagflation,
        scenario_text=scenario_text,
        reasons=tuple(reasons),
        observation=obs,
    )
