"""Period engine: runs classifier, controller and planner in sequence."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from drawdownplan import __version__
from drawdownplan.config.defaults import get_profile
from drawdownplan.config.schema import EngineConfig, PeriodInputs
from drawdownplan.core.state import ControllerState
from drawdownplan.io.serialize import compute_config_hash
from drawdownplan.market.classifier import MarketAssessment, classify
from drawdownplan.policies.actions import ActionInputs, ActionResult, plan_action
from drawdownplan.policies.liquidity import runway_months, target_liquidity
from drawdownplan.policies.spending.controller import (
    SpendingInputs,
    SpendingResult,
    compute_spending,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PeriodResult:
    """Everything decided for one period."""

    assessment: MarketAssessment
    runway_months: float
    spending: SpendingResult
    target_liquidity: float
    action: ActionResult

    @property
    def new_state(self) -> ControllerState:
        """Controller state to pass into the next period."""
        return self.spending.new_state


@dataclass
class SimulationResult:
    """History of a multi-period run.

    Arrays have one entry per period, in input order.
    """

    periods: list[PeriodResult]
    final_state: ControllerState
    regimes: list[str]
    flex_rates: np.ndarray
    annual_withdrawals: np.ndarray
    real_drawdowns: np.ndarray
    alarm_flags: np.ndarray
    taxes_paid: np.ndarray
    liquidity_after: np.ndarray
    config_hash: str = ""
    engine_version: str = ""
    config: EngineConfig | None = field(default=None, repr=False)


def evaluate_period(
    period: PeriodInputs,
    prior_state: ControllerState | None,
    config: EngineConfig,
) -> PeriodResult:
    """Evaluate one period for one household.

    Runway is measured in months of floor + flex spending covered by the
    household's cash. Pure: the caller stores ``result.new_state`` for the
    next call.

    Args:
        period: Market readings, holdings and budgets for the period.
        prior_state: State returned by the previous period, or None on the first.
        config: Engine constants.

    Returns:
        PeriodResult with assessment, spending decision, target and actions.
    """
    household = period.household
    accounts = household.accounts
    profile = get_profile(config, household.risk_profile)
    liquidity = accounts.liquidity
    portfolio = accounts.portfolio_value

    assessment = classify(period.observation, config)
    runway = runway_months(liquidity, period.floor_budget, period.flex_budget)
    spending = compute_spending(
        SpendingInputs(
            assessment=assessment,
            prior_state=prior_state,
            floor_budget=period.floor_budget,
            flex_budget=period.flex_budget,
            runway_months=runway,
            portfolio_value=portfolio,
            total_wealth=portfolio + liquidity,
            profile=profile,
            pension_annual=period.pension_annual,
            round_to_5pct=period.round_to_5pct,
        ),
        config,
    )
    target = target_liquidity(profile, assessment, period.floor_budget, period.flex_budget)
    action = plan_action(
        ActionInputs(
            current_liquidity=liquidity,
            portfolio_value=portfolio,
            target_liquidity=target,
            assessment=assessment,
            gross_floor=period.floor_budget,
            spending=spending,
            min_gold=period.min_gold,
        ),
        household,
        config,
    )
    return PeriodResult(
        assessment=assessment,
        runway_months=runway,
        spending=spending,
        target_liquidity=target,
        action=action,
    )


def simulate_periods(
    periods: Sequence[PeriodInputs],
    config: EngineConfig,
    initial_state: ControllerState | None = None,
) -> SimulationResult:
    """Evaluate a sequence of periods, threading the controller state.

    Each period's holdings are taken as given: applying the planned trades
    and market moves between periods is the caller's job.

    Raises:
        ValueError: If ``periods`` is empty.
    """
    if not periods:
        raise ValueError("at least one period is required")

    state = initial_state
    results: list[PeriodResult] = []
    for i, period in enumerate(periods):
        result = evaluate_period(period, state, config)
        logger.debug(
            "Period %d: %s, flex rate %.1f%%",
            i,
            result.assessment.regime,
            result.spending.flex_rate,
        )
        results.append(result)
        state = result.new_state

    return SimulationResult(
        periods=results,
        final_state=results[-1].new_state,
        regimes=[r.assessment.regime for r in results],
        flex_rates=np.array([r.spending.flex_rate for r in results], dtype=float),
        annual_withdrawals=np.array([r.spending.annual_withdrawal for r in results], dtype=float),
        real_drawdowns=np.array([r.spending.real_drawdown for r in results], dtype=float),
        alarm_flags=np.array([r.spending.alarm_active for r in results], dtype=bool),
        taxes_paid=np.array(
            [r.action.sale.total_tax if r.action.sale else 0.0 for r in results], dtype=float
        ),
        liquidity_after=np.array([r.action.liquidity_after for r in results], dtype=float),
        config_hash=compute_config_hash(config),
        engine_version=__version__,
        config=config,
    )
