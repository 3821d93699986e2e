"""Liquidity action planner: what to sell and what to buy this period."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Literal

from drawdownplan.config.defaults import get_profile
from drawdownplan.config.schema import AccountState, EngineConfig, Household, PlannerSettings
from drawdownplan.market.classifier import MarketAssessment
from drawdownplan.policies.spending.controller import SpendingResult
from drawdownplan.taxes.capital_gains import (
    SaleCaps,
    SaleResult,
    allocate_sale,
    merge_sale_results,
)
from drawdownplan.utils.exceptions import PlanningInvariantError

logger = logging.getLogger(__name__)

ActionReason = Literal["none", "target_gap", "rebalance_up", "rebalance_down"]


@dataclass(frozen=True, slots=True)
class ActionInputs:
    """Figures from the earlier stages of the period."""

    current_liquidity: float
    portfolio_value: float
    target_liquidity: float
    assessment: MarketAssessment
    gross_floor: float
    spending: SpendingResult
    min_gold: float = 0.0


@dataclass(frozen=True, slots=True)
class FundsFlow:
    """One labelled source or use of funds."""

    label: str
    amount: float


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Transactions for the period and the resulting balances.

    The narrative fields (``title``, ``reason``, ``sources``, ``uses``) are
    derived from the numeric fields.
    """

    liquidity_after: float
    gold_after: float
    gold_purchase: float
    equity_purchase: float
    sale: SaleResult | None
    title: str
    reason: ActionReason
    status: Literal["ok", "action"]
    liquidity_need: float
    rebalanced: bool
    equity_sold: float
    gold_sold: float
    gold_weight_before_pct: float
    gold_weight_after_pct: float
    sales_tax_rate_pct: float
    liquidity_gap: float
    sources: tuple[FundsFlow, ...] = ()
    uses: tuple[FundsFlow, ...] = ()


def _round_up(amount: float, step: float) -> float:
    return math.ceil(amount / step) * step


def liquidity_need(inputs: ActionInputs, min_runway_months: float, p: PlannerSettings) -> float:
    """Cash to raise for the liquid reserve, 0 when not worth a trade.

    In a deep bear market the reserve must still cover a safety buffer after
    a year of withdrawals. Elsewhere it is compared with the target, which is
    discounted while a bear market is bouncing far below its high.
    """
    liquidity = inputs.current_liquidity
    target = inputs.target_liquidity
    market = inputs.assessment
    need = 0.0
    if market.regime == "bear_deep":
        projected = liquidity - inputs.spending.monthly_withdrawal * 12.0
        buffer = max(
            inputs.gross_floor / 12.0 * min_runway_months, target * p.bear_target_share
        )
        if projected < buffer:
            need = _round_up(buffer - projected, p.quantize_step)
    else:
        discount = (
            p.recovery_target_discount
            if market.regime == "recovery_in_bear"
            and market.ath_gap_pct > p.recovery_discount_min_gap_pct
            else 1.0
        )
        adjusted_target = target * discount
        if liquidity < adjusted_target:
            need = _round_up(adjusted_target - liquidity, p.quantize_step)

    coverage = liquidity / target if target > 0 else 1.0
    if 1.0 - p.coverage_band <= coverage <= 1.0 + p.coverage_band:
        need = 0.0
    if 0 < need < p.min_liquidity_trade:
        need = 0.0
    return need


def gold_rebalance_need(
    accounts: AccountState, portfolio_value: float, p: PlannerSettings
) -> tuple[float, float]:
    """Return ``(shortfall, surplus)`` of gold against its target band."""
    if not accounts.gold_active or portfolio_value <= 0:
        return 0.0, 0.0
    min_trade = max(p.min_rebalance_trade, p.min_rebalance_trade_pct * portfolio_value)
    weight = accounts.gold_value / portfolio_value
    target = accounts.gold_target_pct / 100.0
    band = accounts.rebalancing_band_pct / 100.0
    if weight < target * (1.0 - band):
        shortfall = target * portfolio_value - accounts.gold_value
        return (shortfall if shortfall > min_trade else 0.0), 0.0
    if weight > target * (1.0 + band):
        surplus = accounts.gold_value - target * portfolio_value
        return 0.0, (surplus if surplus > min_trade else 0.0)
    return 0.0, 0.0


def plan_action(inputs: ActionInputs, household: Household, config: EngineConfig) -> ActionResult:
    """Decide the period's sales and purchases.

    A gold surplus with no liquidity need is sold into equities. Otherwise
    the combined liquidity and gold shortfall is raised by selling tranches
    (gold only in a deep bear market); the proceeds refill liquidity first,
    then buy gold, and any rest stays liquid.

    Raises:
        PlanningInvariantError: If liquidity rose materially without a sale.
        ConfigError: If the household's risk profile is unknown.
    """
    p = config.planner
    accounts = household.accounts
    profile = get_profile(config, household.risk_profile)
    market = inputs.assessment
    liquidity = inputs.current_liquidity
    portfolio = inputs.portfolio_value

    need = liquidity_need(inputs, profile.min_runway_months, p)
    gold_shortfall, gold_surplus = gold_rebalance_need(accounts, portfolio, p)

    sale: SaleResult | None = None
    liquidity_after = liquidity
    gold_purchase = 0.0
    equity_purchase = 0.0
    title = "No action required"
    reason: ActionReason = "none"
    rebalanced = False

    if gold_surplus > 0 and need == 0:
        title = "Strategic rebalancing (gold -> equities)"
        reason = "rebalance_down"
        rebalanced = True
        result = allocate_sale(
            gold_surplus,
            accounts,
            household.taxes,
            SaleCaps(min_gold=inputs.min_gold, force_kind="gold"),
            market.regime,
            config,
        )
        if result.achieved_refill > 0:
            sale = merge_sale_results(sale, result)
            equity_purchase = result.achieved_refill
    elif need + gold_shortfall > 0:
        rebalanced = True
        caps = (
            SaleCaps(min_gold=inputs.min_gold, force_kind="gold")
            if market.regime == "bear_deep"
            else SaleCaps(min_gold=inputs.min_gold)
        )
        result = allocate_sale(
            need + gold_shortfall, accounts, household.taxes, caps, market.regime, config
        )
        if result.achieved_refill > 0:
            sale = merge_sale_results(sale, result)
            proceeds = result.achieved_refill
            to_liquidity = min(proceeds, need)
            gold_purchase = min(proceeds - to_liquidity, gold_shortfall)
            liquidity_after = liquidity + proceeds - gold_purchase

    gold_sold = sale.gross_for("gold") if sale else 0.0
    equity_sold = sale.total_gross - gold_sold if sale else 0.0
    gold_after = accounts.gold_value - gold_sold + gold_purchase

    sources: list[FundsFlow] = []
    uses: list[FundsFlow] = []
    if sale is not None:
        if reason == "none":
            if need > 0 and gold_shortfall > 0:
                title, reason = "Buffer and gold rebuild", "target_gap"
            elif need > 0:
                title, reason = "Buffer refill", "target_gap"
            elif gold_shortfall > 0:
                title, reason = "Strategic rebalancing (equities -> gold)", "rebalance_up"
        if equity_sold > 0:
            sources.append(FundsFlow("Equity ETF", equity_sold))
        if gold_sold > 0:
            sources.append(FundsFlow("Gold", gold_sold))
        added = liquidity_after - liquidity
        if added > 1:
            uses.append(FundsFlow("Liquidity buffer", added))
        if gold_purchase > 0:
            uses.append(FundsFlow("Gold purchase", gold_purchase))
        if equity_purchase > 0:
            uses.append(FundsFlow("Equity ETF purchase", equity_purchase))

    total_gross = sale.total_gross if sale else 0.0
    portfolio_after = portfolio - total_gross + gold_purchase + equity_purchase
    weight_before = accounts.gold_value / portfolio * 100.0 if portfolio > 0 else 0.0
    weight_after = gold_after / portfolio_after * 100.0 if portfolio_after > 0 else 0.0

    if liquidity_after - liquidity > p.invariant_tolerance and sale is None:
        raise PlanningInvariantError("Liquidity increased without a sale")

    if sale is not None:
        logger.debug(
            "%s: sold %.0f gross (tax %.0f), liquidity %.0f -> %.0f",
            title,
            sale.total_gross,
            sale.total_tax,
            liquidity,
            liquidity_after,
        )

    return ActionResult(
        liquidity_after=liquidity_after,
        gold_after=gold_after,
        gold_purchase=gold_purchase,
        equity_purchase=equity_purchase,
        sale=sale,
        title=title,
        reason=reason,
        status="action" if sale is not None else "ok",
        liquidity_need=need,
        rebalanced=rebalanced,
        equity_sold=equity_sold,
        gold_sold=gold_sold,
        gold_weight_before_pct=weight_before,
        gold_weight_after_pct=weight_after,
        sales_tax_rate_pct=sale.effective_tax_rate * 100.0 if sale else 0.0,
        liquidity_gap=inputs.target_liquidity - liquidity,
        sources=tuple(sources),
        uses=tuple(uses),
    )
