"""Sell-order policies: which tranche is liquidated first."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from drawdownplan.config.schema import AccountState

TrancheKind = Literal["equity_old", "equity_new", "gold"]
SellOrderPolicy = Literal["gold_first", "gold_last", "equity_only"]

_GOLD_FIRST_WHEN_OVERWEIGHT = frozenset(
    {"recovery_in_bear", "peak_hot", "peak_stable", "side_long"}
)


@dataclass(frozen=True, slots=True)
class Tranche:
    """A liquidatable position with its own tax treatment.

    Attributes:
        kind: Position type.
        market_value: Current market value.
        cost_basis: Acquisition cost.
        exempt_fraction: Fraction of the gain exempt from tax (partial exemption).
    """

    kind: TrancheKind
    market_value: float
    cost_basis: float
    exempt_fraction: float = 0.0

    @property
    def gain_ratio(self) -> float:
        """Unrealized gain per unit of market value, never negative."""
        if self.market_value <= 0:
            return 0.0
        return max(0.0, (self.market_value - self.cost_basis) / self.market_value)

    @property
    def tax_drag_ratio(self) -> float:
        """Taxable gain per unit of market value."""
        return self.gain_ratio * (1.0 - self.exempt_fraction)


def build_tranches(accounts: AccountState) -> list[Tranche]:
    """Sellable tranches; positions without positive market value are dropped."""
    tranches = [
        Tranche(
            "equity_old",
            accounts.equity_old_value,
            accounts.equity_old_cost,
            accounts.equity_old_exempt,
        ),
        Tranche(
            "equity_new",
            accounts.equity_new_value,
            accounts.equity_new_cost,
            accounts.equity_new_exempt,
        ),
    ]
    if accounts.gold_active:
        tranches.append(
            Tranche(
                "gold",
                accounts.gold_value,
                accounts.gold_cost,
                1.0 if accounts.gold_tax_exempt else 0.0,
            )
        )
    return [t for t in tranches if t.market_value > 0]


def rank_equities(tranches: Sequence[Tranche]) -> list[Tranche]:
    """Equity tranches ordered by ascending tax drag (cheapest to sell first)."""
    equities = [t for t in tranches if t.kind != "gold"]
    return sorted(equities, key=lambda t: t.tax_drag_ratio)


def select_sell_order_policy(accounts: AccountState, regime: str) -> SellOrderPolicy:
    """Choose where gold goes in the sell order.

    Gold is sold first in a deep bear market (it is the crisis reserve), and
    when it sits above its upper rebalancing band in a bear-market recovery or
    in a calm market. Otherwise it is sold last.
    """
    total = accounts.portfolio_value
    if not accounts.gold_active or total <= 0:
        return "equity_only"
    weight = accounts.gold_value / total
    upper_band = accounts.gold_target_pct / 100.0 * (1.0 + accounts.rebalancing_band_pct / 100.0)
    if regime == "bear_deep":
        return "gold_first"
    if regime in _GOLD_FIRST_WHEN_OVERWEIGHT and weight > upper_band:
        return "gold_first"
    return "gold_last"


def build_sell_order(
    tranches: Sequence[Tranche],
    policy: SellOrderPolicy,
    force_kind: TrancheKind | None = None,
) -> list[Tranche]:
    """Arrange tranches in liquidation order.

    Args:
        tranches: Eligible tranches.
        policy: Where gold is placed relative to the ranked equities.
        force_kind: Restrict the order to a single tranche kind.
    """
    equities = rank_equities(tranches)
    gold = [t for t in tranches if t.kind == "gold"]
    if policy == "gold_first":
        order = gold + equities
    elif policy == "gold_last":
        order = equities + gold
    else:
        order = equities
    if force_kind is not None:
        order = [t for t in order if t.kind == force_kind]
    return order
