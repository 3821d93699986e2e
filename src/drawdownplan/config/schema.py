"""Pydantic v2 configuration and input models for drawdownplan."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from drawdownplan.market.regimes import DEFAULT_REGIME_MAP, MARKET_REGIMES, RUNWAY_RANK


class RateChangeLimits(BaseModel):
    """Smoothing weight and per-period caps on flex-rate moves (percentage points)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    smoothing_alpha: float = Field(default=0.35, gt=0, le=1)
    max_up_pp: float = Field(default=2.5, ge=0)
    agile_up_pp: float = Field(default=4.5, ge=0)
    fast_recovery_up_pp: float = Field(default=10.0, ge=0)
    fast_recovery_runway_months: float = Field(default=36, ge=0)
    max_down_pp: float = Field(default=3.5, ge=0)
    bear_down_pp: float = Field(default=10.0, ge=0)


class GuardrailThresholds(BaseModel):
    """Thresholds used by the spending controller's guardrails."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    alarm_withdrawal_rate: float = Field(default=0.055, gt=0, le=1)
    alarm_drawdown: float = Field(default=0.25, gt=0, le=1)
    alarm_thin_runway_months: float = Field(default=24, ge=0)
    alarm_flex_floor: float = Field(default=35.0, ge=0, le=100)
    alarm_base_cut_pp: float = Field(default=10.0, ge=0)
    alarm_shortfall_cut_pp: float = Field(default=20.0, ge=0)
    caution_withdrawal_rate: float = Field(default=0.045, gt=0, le=1)
    caution_inflation_cap_pct: float = Field(default=3.0, ge=0)
    calm_clear_drawdown: float = Field(default=0.15, ge=0, le=1)
    recovery_clear_drawdown: float = Field(default=0.20, ge=0, le=1)
    bear_clear_drawdown: float = Field(default=0.10, ge=0, le=1)
    runway_clear_margin_months: float = Field(default=6, ge=0)
    deep_bear_base_cut_pp: float = Field(default=50.0, ge=0, le=100)
    deep_bear_gap_pct: float = Field(default=20.0, ge=0)
    recovery_curb_bands: list[tuple[float, float]] = Field(
        default=[(10.0, 10.0), (15.0, 15.0), (25.0, 20.0)],
        description="(max ATH gap %, curb pp) pairs, checked in order",
    )
    recovery_curb_max_pp: float = Field(default=25.0, ge=0, le=100)
    recovery_thin_runway_months: float = Field(default=30, ge=0)
    recovery_thin_runway_curb_pp: float = Field(default=20.0, ge=0, le=100)
    recovery_floor_max_gap_pct: float = Field(default=10.0, ge=0)
    recovery_floor_min_runway_months: float = Field(default=30, ge=0)
    floor_tolerance: float = Field(default=1.0, ge=0, description="Currency units")


class PlannerSettings(BaseModel):
    """Trade sizing used by the liquidity action planner."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    quantize_step: float = Field(default=1000.0, gt=0)
    coverage_band: float = Field(default=0.10, ge=0, le=1)
    min_liquidity_trade: float = Field(default=10_000.0, ge=0)
    min_rebalance_trade: float = Field(default=10_000.0, ge=0)
    min_rebalance_trade_pct: float = Field(default=0.005, ge=0, le=1)
    bear_target_share: float = Field(default=0.7, ge=0, le=1)
    recovery_target_discount: float = Field(default=0.85, gt=0, le=1)
    recovery_discount_min_gap_pct: float = Field(default=10.0, ge=0)
    invariant_tolerance: float = Field(default=500.0, ge=0)


class TaxSettings(BaseModel):
    """Flat capital-gains tax constants for the sale allocator."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    capital_gains_rate: float = Field(default=0.25, ge=0, le=1)
    solidarity_surcharge: float = Field(default=0.055, ge=0, le=1)
    degenerate_factor: float = Field(default=0.01, ge=0, lt=1)
    fallback_gross_multiplier: float = Field(default=1.5, ge=1)
    min_sale_amount: float = Field(default=1.0, ge=0)
    negligible_remaining: float = Field(default=0.01, ge=0)


class RiskProfile(BaseModel):
    """Liquidity runway policy for one risk profile."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    is_dynamic: bool = True
    min_runway_months: float = Field(default=24, gt=0)
    runway_months: dict[str, float] = Field(
        description="Target runway per runway regime; must include hot_neutral",
    )
    # Reinvestment thresholds are carried for callers; the planner does not read them.
    reinvest_threshold_factor: float = Field(default=1.25, gt=0)
    reinvest_target_factor: float = Field(default=1.1, gt=0)

    @model_validator(mode="after")
    def _validate_runway(self) -> RiskProfile:
        if "hot_neutral" not in self.runway_months:
            raise ValueError(f"profile {self.name!r} needs a hot_neutral runway entry")
        unknown = sorted(set(self.runway_months) - set(RUNWAY_RANK))
        if unknown:
            raise ValueError(f"profile {self.name!r} has unknown runway regimes: {unknown}")
        return self

    def target_runway_months(self, runway_regime: str) -> float:
        """Target months for a runway regime, falling back to hot_neutral."""
        return self.runway_months.get(runway_regime, self.runway_months["hot_neutral"])


class EngineConfig(BaseModel):
    """Versioned, immutable constant set shared by all engine components."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: str = "2025.10"
    stagflation_inflation_threshold: float = Field(default=4.0, description="Percent")
    rate_limits: RateChangeLimits = Field(default_factory=RateChangeLimits)
    guardrails: GuardrailThresholds = Field(default_factory=GuardrailThresholds)
    planner: PlannerSettings = Field(default_factory=PlannerSettings)
    taxes: TaxSettings = Field(default_factory=TaxSettings)
    profiles: dict[str, RiskProfile] = Field(default_factory=dict)
    regime_map: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_REGIME_MAP))
    scenario_text: dict[str, str] = Field(
        default_factory=lambda: {
            "peak_hot": "Overheated market",
            "peak_stable": "Stable high",
            "recovery": "Confirmed recovery",
            "bear_deep": "Deep bear market",
            "corr_young": "Young correction",
            "side_long": "Prolonged sideways market",
            "recovery_in_bear": "Recovery within bear market",
        }
    )

    @model_validator(mode="after")
    def _validate_regime_map(self) -> EngineConfig:
        for regime in MARKET_REGIMES:
            bucket = self.regime_map.get(regime)
            if bucket not in RUNWAY_RANK:
                raise ValueError(f"regime {regime!r} maps to unknown runway bucket {bucket!r}")
        return self

    def runway_regime(self, regime: str) -> str:
        """Runway bucket for a market regime."""
        return self.regime_map[regime]


# --- Caller inputs ---


class MarketObservation(BaseModel):
    """Year-end market readings for one period.

    ``year_end`` is the latest close; ``year_end_1`` .. ``year_end_3`` are the
    closes one to three years before it. ``inflation`` is in percent.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    ath: float
    year_end: float
    year_end_1: float = 0.0
    year_end_2: float = 0.0
    year_end_3: float = 0.0
    years_since_ath: float = Field(default=0.0, ge=0)
    inflation: float = 0.0


class AccountState(BaseModel):
    """Portfolio balances, cost bases and tax treatment."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    equity_old_value: float = Field(default=0.0, ge=0)
    equity_old_cost: float = Field(default=0.0, ge=0)
    equity_old_exempt: float = Field(
        default=0.0, ge=0, le=1, description="Fraction of gains exempt from tax"
    )
    equity_new_value: float = Field(default=0.0, ge=0)
    equity_new_cost: float = Field(default=0.0, ge=0)
    equity_new_exempt: float = Field(default=0.3, ge=0, le=1)
    gold_active: bool = False
    gold_value: float = Field(default=0.0, ge=0)
    gold_cost: float = Field(default=0.0, ge=0)
    gold_target_pct: float = Field(default=0.0, ge=0, le=100)
    rebalancing_band_pct: float = Field(
        default=25.0, ge=0, description="Relative band around the gold target, in percent"
    )
    gold_tax_exempt: bool = True
    overnight_cash: float = Field(default=0.0, ge=0)
    money_market: float = Field(default=0.0, ge=0)

    @property
    def liquidity(self) -> float:
        """Total liquid reserve."""
        return self.overnight_cash + self.money_market

    @property
    def portfolio_value(self) -> float:
        """Market value of all sellable positions."""
        return self.equity_old_value + self.equity_new_value + self.gold_value


class TaxInputs(BaseModel):
    """Personal tax parameters."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    church_tax_rate: float = Field(default=0.0, ge=0, le=0.1)
    annual_allowance: float = Field(default=1_000.0, ge=0)


class Household(BaseModel):
    """Everything the planner needs to know about one household's holdings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    accounts: AccountState
    taxes: TaxInputs = Field(default_factory=TaxInputs)
    risk_profile: str = "safety-dynamic"


class PeriodInputs(BaseModel):
    """Inputs for evaluating a single period."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    observation: MarketObservation
    household: Household
    floor_budget: float = Field(ge=0, description="Annual inflation-adjusted floor spending")
    flex_budget: float = Field(ge=0, description="Annual inflation-adjusted flex spending")
    pension_annual: float = Field(default=0.0, ge=0)
    round_to_5pct: bool = False
    min_gold: float = Field(default=0.0, ge=0, description="Gold reserve never sold")
