"""Guardrail spending controller with alarm hysteresis.

The annual withdrawal is a fixed floor plus a share (the *flex rate*) of a
discretionary flex budget. Each period the controller moves the flex rate
toward a regime-dependent target with exponential smoothing and asymmetric
rate limits, and overrides that with guardrails:

- **Alarm** (bear markets only): engaged on a critical withdrawal rate with a
  thin runway, or on a deep real drawdown. Cuts the flex rate once on entry and
  then holds it until one of the regime-specific clearing rules fires.
- **Recovery cap**: limits the flex rate while a bear market is bouncing.
- **Caution**: caps the inflation indexing of the budget when the withdrawal
  rate is high.
- **Budget floor**: raises the flex rate so the total budget keeps its
  purchasing power, unless markets are worsening.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Literal

from drawdownplan.config.schema import EngineConfig, GuardrailThresholds, RiskProfile
from drawdownplan.core.state import ControllerState
from drawdownplan.market.classifier import MarketAssessment
from drawdownplan.market.regimes import CALM_REGIMES, regime_rank

logger = logging.getLogger(__name__)

CutReason = Literal[
    "ALARM", "CAUTION", "RECOVERY_CAP", "SMOOTHING", "FLOOR_ONLY", "PROFILE", "NONE"
]

SOURCE_PROFILE = "Profile"
SOURCE_DEEP_BEAR = "Deep bear"
SOURCE_ALARM = "Guardrail (alarm)"
SOURCE_CAUTION = "Guardrail (caution)"
SOURCE_RECOVERY_CAP = "Guardrail (recovery cap)"
SOURCE_SMOOTHING_UP = "Smoothing (rise)"
SOURCE_SMOOTHING_DOWN = "Smoothing (fall)"
SOURCE_BUDGET_FLOOR = "Budget floor"

_CUT_REASONS: dict[str, CutReason] = {
    SOURCE_ALARM: "ALARM",
    SOURCE_CAUTION: "CAUTION",
    SOURCE_RECOVERY_CAP: "RECOVERY_CAP",
    SOURCE_SMOOTHING_UP: "SMOOTHING",
    SOURCE_SMOOTHING_DOWN: "SMOOTHING",
    SOURCE_BUDGET_FLOOR: "FLOOR_ONLY",
}


@dataclass(frozen=True, slots=True)
class Decision:
    """One labelled step of the decision trace."""

    step: str
    impact: str
    status: Literal["active", "inactive"]
    severity: Literal["info", "guardrail", "alarm"] = "info"


@dataclass(frozen=True, slots=True)
class GuardrailCheck:
    """Snapshot of a guardrail metric against its threshold."""

    name: str
    value: float
    threshold: float
    unit: Literal["percent", "months"]
    rule: Literal["max", "min"]


@dataclass(frozen=True, slots=True)
class SpendingDiagnosis:
    """Decision trace and guardrail snapshot for one period."""

    decisions: tuple[Decision, ...]
    guardrails: tuple[GuardrailCheck, ...]
    key_params: dict[str, float]
    regime: str
    scenario_text: str
    alarm_active: bool


@dataclass(frozen=True, slots=True)
class SpendingInputs:
    """Everything the controller needs for one period.

    Budgets are annual and already inflation-adjusted by the caller.
    """

    assessment: MarketAssessment
    prior_state: ControllerState | None
    floor_budget: float
    flex_budget: float
    runway_months: float
    portfolio_value: float
    total_wealth: float
    profile: RiskProfile
    pension_annual: float = 0.0
    round_to_5pct: bool = False


@dataclass(frozen=True, slots=True)
class SpendingResult:
    """Withdrawal decision for one period plus the state for the next."""

    monthly_withdrawal: float
    annual_withdrawal: float
    cut_pct: float
    cut_source: str
    cut_reason: CutReason
    flex_rate: float
    smoothed_flex_rate: float
    withdrawal_rate: float
    real_drawdown: float
    alarm_active: bool
    regime: str
    new_state: ControllerState
    diagnosis: SpendingDiagnosis = field(repr=False)


def _round_half_up(x: float) -> float:
    return float(math.floor(x + 0.5))


def _clamp_rate(rate: float) -> float:
    return max(0.0, min(100.0, rate))


def recovery_curb(ath_gap_pct: float, runway_months: float, g: GuardrailThresholds) -> float:
    """Points the flex rate stays below 100% during a bear-market recovery."""
    gap = max(0.0, ath_gap_pct)
    curb = g.recovery_curb_max_pp
    for max_gap, band_curb in g.recovery_curb_bands:
        if gap <= max_gap:
            curb = band_curb
            break
    if runway_months < g.recovery_thin_runway_months:
        curb = max(curb, g.recovery_thin_runway_curb_pp)
    return curb


def _alarm_clearance(
    regime: str,
    withdrawal_rate: float,
    drawdown: float,
    runway_ok: bool,
    no_new_low: bool,
    g: GuardrailThresholds,
) -> Decision | None:
    """Return the de-escalation decision if the active alarm may be cleared."""
    quote_ok = withdrawal_rate <= g.alarm_withdrawal_rate
    if regime in CALM_REGIMES:
        if quote_ok or drawdown <= g.calm_clear_drawdown:
            return Decision(
                "Alarm de-escalation (peak)",
                "Market recovered, drawdown or withdrawal rate uncritical. Alarm ends.",
                "active",
                "guardrail",
            )
    elif regime == "recovery_in_bear":
        if (quote_ok or runway_ok or drawdown <= g.recovery_clear_drawdown) and no_new_low:
            return Decision(
                "Alarm de-escalation (recovery)",
                "Withdrawal rate, runway or drawdown relaxed without a new yearly low. "
                "Alarm ends.",
                "active",
                "guardrail",
            )
    elif regime == "bear_deep":
        stable = drawdown <= g.bear_clear_drawdown or withdrawal_rate <= g.caution_withdrawal_rate
        if stable and runway_ok and no_new_low:
            return Decision(
                "Alarm de-escalation (stable bear)",
                "Drawdown or withdrawal rate uncritical, runway stable, no new yearly low. "
                "Alarm ends.",
                "active",
                "guardrail",
            )
    return None


def compute_spending(inputs: SpendingInputs, config: EngineConfig) -> SpendingResult:
    """Decide this period's withdrawal and the controller state for the next.

    Pure: ``inputs.prior_state`` is never modified. A missing or
    uninitialized prior state starts the controller at a 100% flex rate with
    today's wealth as the real-wealth peak.

    Args:
        inputs: Market assessment, prior state, budgets and portfolio figures.
        config: Engine constants.

    Returns:
        SpendingResult with the withdrawal, cut classification, new state
        and decision trace.
    """
    g = config.guardrails
    limits = config.rate_limits
    market = inputs.assessment
    obs = market.observation
    floor = inputs.floor_budget
    flex = inputs.flex_budget
    runway = inputs.runway_months
    min_runway = inputs.profile.min_runway_months
    pension = inputs.pension_annual
    decisions: list[Decision] = []

    prior = inputs.prior_state
    if prior is None or not prior.initialized:
        prior = ControllerState.initial(
            market.regime, floor + flex + pension, pension, inputs.total_wealth
        )
        decisions.append(
            Decision(
                "System initialization",
                "Start at a 100% flex rate and set the initial wealth peak.",
                "active",
            )
        )

    inflation_factor = (
        prior.cumulative_inflation_factor if prior.cumulative_inflation_factor > 0 else 1.0
    )
    real_wealth = inputs.total_wealth / inflation_factor
    peak_real_wealth = prior.peak_real_wealth if prior.peak_real_wealth > 0 else real_wealth
    drawdown = (
        (peak_real_wealth - real_wealth) / peak_real_wealth if peak_real_wealth > 0 else 0.0
    )

    prior_rate = prior.flex_rate
    alpha = limits.smoothing_alpha
    provisional_rate = alpha * 100.0 + (1.0 - alpha) * prior_rate
    provisional_withdrawal = floor + flex * provisional_rate / 100.0
    portfolio = inputs.portfolio_value
    withdrawal_rate = provisional_withdrawal / portfolio if portfolio > 0 else 0.0

    # Only the two prior closes count here; classification looks back four years.
    no_new_low = obs.year_end > min(obs.year_end_1, obs.year_end_2)
    runway_ok = runway >= min_runway + g.runway_clear_margin_months

    alarm_was_active = prior.alarm_active
    if alarm_was_active:
        clearance = _alarm_clearance(
            market.regime, withdrawal_rate, drawdown, runway_ok, no_new_low, g
        )
        if clearance is not None:
            alarm_was_active = False
            decisions.append(clearance)
            logger.info("Alarm cleared in regime %s", market.regime)

    alarm_triggered = (
        not alarm_was_active
        and market.runway_regime == "bear"
        and (
            (withdrawal_rate > g.alarm_withdrawal_rate and runway < g.alarm_thin_runway_months)
            or drawdown > g.alarm_drawdown
        )
    )
    if alarm_triggered:
        decisions.append(
            Decision(
                "Alarm activation",
                "Bear market and a critical withdrawal rate or drawdown. Alarm mode on.",
                "active",
                "alarm",
            )
        )
        logger.info(
            "Alarm activated (withdrawal rate %.2f%%, drawdown %.1f%%, runway %.0f months)",
            withdrawal_rate * 100,
            drawdown * 100,
            runway,
        )
    alarm_active = alarm_triggered or alarm_was_active

    if alarm_active:
        cut_source = SOURCE_ALARM
        if alarm_triggered:
            shortfall = max(0.0, (min_runway - runway) / min_runway)
            cut = _round_half_up(g.alarm_base_cut_pp + g.alarm_shortfall_cut_pp * shortfall)
            smoothed = min(prior_rate, max(g.alarm_flex_floor, prior_rate - cut))
            impact = f"Flex rate set to {smoothed:.1f}% (cut of {cut:.0f} pp)."
        else:
            smoothed = prior_rate
            impact = f"Alarm still active, no further cut. Rate stays at {smoothed:.1f}%."
        decisions.append(Decision("Alarm-mode adjustment", impact, "active", "alarm"))
    else:
        current_rank = regime_rank(market.regime, config.regime_map)
        last_rank = regime_rank(prior.last_regime, config.regime_map)
        decisions.append(
            Decision(
                f"Market regime '{market.scenario_text}'",
                "Sets the base adjustment of the flex rate.",
                "inactive",
            )
        )

        raw_cut = 0.0
        cut_source = SOURCE_PROFILE
        if market.regime == "bear_deep":
            raw_cut = g.deep_bear_base_cut_pp + max(0.0, market.ath_gap_pct - g.deep_bear_gap_pct)
            cut_source = SOURCE_DEEP_BEAR

        smoothed = alpha * (100.0 - raw_cut) + (1.0 - alpha) * prior_rate
        delta = smoothed - prior_rate
        max_up = limits.max_up_pp
        if current_rank > last_rank and runway >= limits.fast_recovery_runway_months:
            max_up = max(max_up, limits.fast_recovery_up_pp)
        elif market.runway_regime in ("peak", "hot_neutral", "recovery_in_bear"):
            max_up = limits.agile_up_pp
        max_down = limits.bear_down_pp if market.regime == "bear_deep" else limits.max_down_pp

        if delta > max_up:
            smoothed = prior_rate + max_up
            cut_source = SOURCE_SMOOTHING_UP
        elif delta < -max_down:
            smoothed = prior_rate - max_down
            cut_source = SOURCE_SMOOTHING_DOWN
        if cut_source in (SOURCE_SMOOTHING_UP, SOURCE_SMOOTHING_DOWN):
            decisions.append(
                Decision(
                    "Rate smoothing",
                    f"Change limited to {max_up if delta > 0 else max_down:g} pp. "
                    f"New rate: {smoothed:.1f}%",
                    "active",
                )
            )

        recovery_ceiling = 100.0
        if market.regime == "recovery_in_bear":
            recovery_ceiling = 100.0 - recovery_curb(market.ath_gap_pct, runway, g)
            if smoothed > recovery_ceiling:
                smoothed = recovery_ceiling
                cut_source = SOURCE_RECOVERY_CAP
                decisions.append(
                    Decision(
                        SOURCE_RECOVERY_CAP,
                        f"Despite the recovery the flex rate is capped at "
                        f"{recovery_ceiling:.1f}% (ATH gap: {market.ath_gap_pct:.1f}%).",
                        "active",
                        "guardrail",
                    )
                )

        inflation = obs.inflation
        if withdrawal_rate > g.caution_withdrawal_rate:
            inflation = min(inflation, g.caution_inflation_cap_pct)
            cut_source = SOURCE_CAUTION
            decisions.append(
                Decision(
                    SOURCE_CAUTION,
                    f"Withdrawal rate > {g.caution_withdrawal_rate * 100:g}%. "
                    f"Inflation indexing capped at {g.caution_inflation_cap_pct:g}%.",
                    "active",
                    "guardrail",
                )
            )
        budget_floor = prior.last_total_budget * (1.0 + inflation / 100.0)

        planned_total = floor + flex * _clamp_rate(smoothed) / 100.0 + pension
        floor_allowed = market.regime != "recovery_in_bear" or (
            market.ath_gap_pct <= g.recovery_floor_max_gap_pct
            and no_new_low
            and runway
            >= max(g.recovery_floor_min_runway_months, min_runway + g.runway_clear_margin_months)
        )
        if (
            floor_allowed
            and current_rank >= last_rank
            and planned_total + g.floor_tolerance < budget_floor
        ):
            needed_withdrawal = max(0.0, budget_floor - pension)
            needed_rate = (
                _clamp_rate((needed_withdrawal - floor) / flex * 100.0) if flex > 0 else 0.0
            )
            if needed_rate > smoothed:
                limit = recovery_ceiling if market.regime == "recovery_in_bear" else 100.0
                smoothed = min(needed_rate, limit)
                cut_source = SOURCE_RECOVERY_CAP if limit < needed_rate else SOURCE_BUDGET_FLOOR
                decisions.append(
                    Decision(
                        SOURCE_BUDGET_FLOOR,
                        f"To preserve purchasing power the rate is raised to {smoothed:.1f}%.",
                        "active",
                        "guardrail",
                    )
                )

    withdrawal = floor + flex * _clamp_rate(smoothed) / 100.0

    if inputs.round_to_5pct:
        unrounded = (withdrawal - floor) / flex * 100.0 if flex > 0 else 0.0
        rounded = _round_half_up(unrounded / 5.0) * 5.0
        if abs(unrounded - rounded) > 0.1:
            withdrawal = floor + flex * rounded / 100.0
            decisions.append(
                Decision(
                    "Rounding",
                    f"Flex rate rounded to the next 5% step ({rounded:.0f}%).",
                    "inactive",
                )
            )

    cut_pct = 100.0 - max(0.0, withdrawal - floor) / flex * 100.0 if flex > 0 else 0.0
    flex_rate = _clamp_rate(100.0 - cut_pct)
    cut_reason: CutReason = _CUT_REASONS.get(cut_source) or ("PROFILE" if cut_pct > 0 else "NONE")

    guardrails = (
        GuardrailCheck(
            "Withdrawal rate", withdrawal_rate, g.alarm_withdrawal_rate, "percent", "max"
        ),
        GuardrailCheck("Real drawdown (total)", drawdown, g.alarm_drawdown, "percent", "max"),
        GuardrailCheck("Runway (vs. minimum)", runway, min_runway, "months", "min"),
    )
    key_params = {
        "peak_real_wealth": peak_real_wealth,
        "current_real_wealth": real_wealth,
        "cumulative_inflation_factor": inflation_factor,
        "withdrawal_rate": withdrawal_rate,
        "real_drawdown": drawdown,
        "runway_months": runway,
    }

    new_state = ControllerState(
        flex_rate=flex_rate,
        last_regime=market.regime,
        last_total_budget=withdrawal + pension,
        pension_annual=pension,
        peak_real_wealth=max(peak_real_wealth, real_wealth),
        # Deflation years leave the factor unchanged.
        cumulative_inflation_factor=inflation_factor * (1.0 + max(0.0, obs.inflation) / 100.0),
        alarm_active=alarm_active,
        initialized=True,
    )
    logger.debug(
        "Spending: %.0f/yr, flex rate %.1f%%, source %s", withdrawal, flex_rate, cut_source
    )

    return SpendingResult(
        monthly_withdrawal=withdrawal / 12.0,
        annual_withdrawal=withdrawal,
        cut_pct=cut_pct,
        cut_source=cut_source,
        cut_reason=cut_reason,
        flex_rate=flex_rate,
        smoothed_flex_rate=smoothed,
        withdrawal_rate=withdrawal_rate,
        real_drawdown=drawdown,
        alarm_active=alarm_active,
        regime=market.regime,
        new_state=new_state,
        diagnosis=SpendingDiagnosis(
            decisions=tuple(decisions),
            guardrails=guardrails,
            key_params=key_params,
            regime=market.regime,
            scenario_text=market.scenario_text,
            alarm_active=alarm_active,
        ),
    )
