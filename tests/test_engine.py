"""Tests for the period engine."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from drawdownplan import __version__
from drawdownplan.config.schema import (
    EngineConfig,
    Household,
    MarketObservation,
    PeriodInputs,
)
from drawdownplan.core.engine import evaluate_period, simulate_periods
from drawdownplan.core.state import ControllerState
from drawdownplan.io.serialize import load_periods
from drawdownplan.utils.exceptions import ConfigError

GOLDEN = Path(__file__).parent / "golden"


def _period(obs: MarketObservation, household: Household, **kwargs: float) -> PeriodInputs:
    return PeriodInputs(
        observation=obs, household=household, floor_budget=24_000, flex_budget=6_000, **kwargs
    )


class TestEvaluatePeriod:
    def test_bear_period(
        self, config: EngineConfig, household: Household, bear_observation: MarketObservation
    ) -> None:
        result = evaluate_period(_period(bear_observation, household), None, config)
        assert result.assessment.regime == "bear_deep"
        assert result.runway_months == pytest.approx(24.0)
        assert result.target_liquidity == pytest.approx(135_000)
        assert result.action.liquidity_after == pytest.approx(85_000)
        assert result.new_state is result.spending.new_state
        assert result.new_state.last_regime == "bear_deep"

    def test_prior_state_is_used(
        self, config: EngineConfig, household: Household, peak_observation: MarketObservation
    ) -> None:
        prior = ControllerState(flex_rate=50.0, last_regime="peak_stable", initialized=True)
        result = evaluate_period(_period(peak_observation, household), prior, config)
        assert result.spending.flex_rate == pytest.approx(54.5)

    def test_unknown_profile(
        self, config: EngineConfig, household: Household, peak_observation: MarketObservation
    ) -> None:
        stranger = household.model_copy(update={"risk_profile": "yolo"})
        with pytest.raises(ConfigError, match="Unknown risk profile"):
            evaluate_period(_period(peak_observation, stranger), None, config)


class TestSimulatePeriods:
    def test_golden_history(self, config: EngineConfig) -> None:
        periods = load_periods((GOLDEN / "three_periods.json").read_text())
        result = simulate_periods(periods, config)
        assert result.regimes == ["peak_stable", "bear_deep", "recovery_in_bear"]
        assert result.alarm_flags.tolist() == [False, True, False]
        assert result.flex_rates.shape == (3,)
        assert result.final_state == result.periods[-1].new_state
        assert result.engine_version == __version__
        assert len(result.config_hash) == 64

    def test_matches_manual_threading(self, config: EngineConfig) -> None:
        periods = load_periods((GOLDEN / "three_periods.json").read_text())
        result = simulate_periods(periods, config)

        state = None
        for period, recorded in zip(periods, result.periods):
            manual = evaluate_period(period, state, config)
            assert manual.spending.annual_withdrawal == pytest.approx(
                recorded.spending.annual_withdrawal
            )
            state = manual.new_state
        assert state == result.final_state

    def test_initial_state(
        self, config: EngineConfig, household: Household, peak_observation: MarketObservation
    ) -> None:
        start = ControllerState(flex_rate=50.0, last_regime="peak_stable", initialized=True)
        result = simulate_periods([_period(peak_observation, household)], config, start)
        np.testing.assert_allclose(result.flex_rates, [54.5])

    def test_taxes_recorded(
        self, config: EngineConfig, household: Household, peak_observation: MarketObservation
    ) -> None:
        result = simulate_periods([_period(peak_observation, household)], config)
        sale = result.periods[0].action.sale
        assert sale is not None
        np.testing.assert_allclose(result.taxes_paid, [sale.total_tax])

    def test_empty_rejected(self, config: EngineConfig) -> None:
        with pytest.raises(ValueError, match="at least one period"):
            simulate_periods([], config)
