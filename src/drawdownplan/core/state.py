"""Controller state carried from one period to the next."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ControllerState:
    """Spending-controller memory, owned by the caller between periods.

    Frozen: the controller never mutates a state, it returns a new one.

    Attributes:
        flex_rate: Authorized share of the flex budget in percent (0-100).
        last_regime: Market regime key of the previous period.
        last_total_budget: Previous period's withdrawal plus pension (nominal).
        pension_annual: Pension annuity of the previous period.
        peak_real_wealth: Highest inflation-deflated total wealth seen so far.
        cumulative_inflation_factor: Product of (1 + inflation) since inception.
        alarm_active: Whether the alarm guardrail is engaged.
        initialized: False only for a placeholder state that has never run.
    """

    flex_rate: float = 100.0
    last_regime: str | None = None
    last_total_budget: float = 0.0
    pension_annual: float = 0.0
    peak_real_wealth: float = 0.0
    cumulative_inflation_factor: float = 1.0
    alarm_active: bool = False
    initialized: bool = False

    def __post_init__(self) -> None:
        if not 0.0 <= self.flex_rate <= 100.0:
            raise ValueError(f"flex_rate must be within 0-100, got {self.flex_rate}")

    @classmethod
    def initial(
        cls,
        regime: str,
        total_budget: float,
        pension_annual: float,
        total_wealth: float,
    ) -> ControllerState:
        """First-run state: full flex rate, wealth peak at today's wealth."""
        return cls(
            flex_rate=100.0,
            last_regime=regime,
            last_total_budget=total_budget,
            pension_annual=pension_annual,
            peak_real_wealth=total_wealth,
            cumulative_inflation_factor=1.0,
            alarm_active=False,
            initialized=True,
        )
