"""Tax-aware sale allocation under a flat capital-gains tax.

Gains are taxed at 25% plus a 5.5% solidarity surcharge on that tax plus the
personal church-tax rate. A shared annual allowance shields the first taxable
gains; each tranche's exempt fraction removes part of its gain from taxation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from drawdownplan.config.schema import AccountState, EngineConfig, TaxInputs, TaxSettings
from drawdownplan.policies.sell_order import (
    TrancheKind,
    build_sell_order,
    build_tranches,
    select_sell_order_policy,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SaleCaps:
    """Limits on a single allocation.

    Attributes:
        min_gold: Gold value that must remain after the sale (None = no floor).
        force_kind: Only sell this tranche kind.
    """

    min_gold: float | None = None
    force_kind: TrancheKind | None = None


@dataclass(frozen=True, slots=True)
class SaleLine:
    """Gross amount sold and tax paid for one tranche kind."""

    kind: str
    gross: float
    tax: float


@dataclass(frozen=True, slots=True)
class SaleResult:
    """Outcome of one or more allocations.

    ``achieved_refill`` may fall short of the requested amount when the
    sellable assets are insufficient; callers must compare.
    """

    total_tax: float
    total_gross: float
    achieved_refill: float
    breakdown: tuple[SaleLine, ...]
    allowance_used: float

    @property
    def effective_tax_rate(self) -> float:
        """Tax paid per unit of gross sale."""
        return self.total_tax / self.total_gross if self.total_gross > 0 else 0.0

    def gross_for(self, kind: str) -> float:
        """Gross amount sold of one tranche kind."""
        return sum(line.gross for line in self.breakdown if line.kind == kind)


def combined_tax_rate(taxes: TaxInputs, settings: TaxSettings) -> float:
    """Flat rate on taxable gains, surcharges included."""
    return settings.capital_gains_rate * (
        1.0 + settings.solidarity_surcharge + taxes.church_tax_rate
    )


def _merge_lines(lines: list[SaleLine], kind: str, gross: float, tax: float) -> None:
    for i, line in enumerate(lines):
        if line.kind == kind:
            lines[i] = SaleLine(kind, line.gross + gross, line.tax + tax)
            return
    lines.append(SaleLine(kind, gross, tax))


def allocate_sale(
    requested: float,
    accounts: AccountState,
    taxes: TaxInputs,
    caps: SaleCaps,
    regime: str,
    config: EngineConfig,
) -> SaleResult:
    """Liquidate tranches to raise a net amount at minimal tax.

    Tranches are visited in the order chosen by the sell-order policy. For
    each one the net amount still missing is grossed up by its tax drag net
    of the allowance still left, capped by what may be sold, and taxed after
    consuming that allowance. The allowance is consumed in sell order.

    Args:
        requested: Net cash to raise.
        accounts: Current balances and cost bases.
        taxes: Church-tax rate and annual allowance.
        caps: Gold floor and optional single-kind restriction.
        regime: Market regime key, used to place gold in the sell order.
        config: Engine constants.

    Returns:
        SaleResult; never raises for insufficient assets.
    """
    settings = config.taxes
    rate = combined_tax_rate(taxes, settings)
    tranches = build_tranches(accounts)
    policy = select_sell_order_policy(accounts, regime)
    order = build_sell_order(tranches, policy, caps.force_kind)

    lines: list[SaleLine] = []
    total_tax = 0.0
    total_gross = 0.0
    remaining = requested
    allowance_left = taxes.annual_allowance

    for tranche in order:
        if remaining <= settings.negligible_remaining:
            break

        sellable = tranche.market_value
        if tranche.kind == "gold" and caps.min_gold is not None:
            sellable = min(sellable, max(0.0, accounts.gold_value - caps.min_gold))
        if sellable <= 0:
            continue

        drag = tranche.tax_drag_ratio
        tax_factor = 1.0 - drag * rate
        if remaining * drag <= allowance_left:
            gross_needed = remaining
        elif tax_factor > settings.degenerate_factor:
            # Gains up to the remaining allowance are untaxed.
            gross_needed = (remaining - allowance_left * rate) / tax_factor
        else:
            gross_needed = remaining * settings.fallback_gross_multiplier
        gross = min(sellable, gross_needed)
        if gross < settings.min_sale_amount:
            continue

        taxable_gain = gross * tranche.gain_ratio * (1.0 - tranche.exempt_fraction)
        allowance = min(allowance_left, taxable_gain)
        tax = max(0.0, taxable_gain - allowance) * rate

        total_gross += gross
        total_tax += tax
        allowance_left -= allowance
        remaining -= gross - tax
        _merge_lines(lines, tranche.kind, gross, tax)
        logger.debug("Sell %.2f of %s (tax %.2f)", gross, tranche.kind, tax)

    return SaleResult(
        total_tax=total_tax,
        total_gross=total_gross,
        achieved_refill=max(0.0, total_gross - total_tax),
        breakdown=tuple(lines),
        allowance_used=taxes.annual_allowance - allowance_left,
    )


def merge_sale_results(first: SaleResult | None, second: SaleResult | None) -> SaleResult | None:
    """Combine two sale results, summing scalars and merging lines by kind."""
    if first is None:
        return second
    if second is None:
        return first
    lines = list(first.breakdown)
    for line in second.breakdown:
        _merge_lines(lines, line.kind, line.gross, line.tax)
    return SaleResult(
        total_tax=first.total_tax + second.total_tax,
        total_gross=first.total_gross + second.total_gross,
        achieved_refill=first.achieved_refill + second.achieved_refill,
        breakdown=tuple(lines),
        allowance_used=first.allowance_used + second.allowance_used,
    )
