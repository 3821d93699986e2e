"""Tests for tranche construction and sell-order policies."""

from __future__ import annotations

import pytest

from drawdownplan.config.schema import AccountState, Household
from drawdownplan.policies.sell_order import (
    Tranche,
    build_sell_order,
    build_tranches,
    rank_equities,
    select_sell_order_policy,
)


class TestTranche:
    def test_gain_and_drag(self) -> None:
        tranche = Tranche("equity_new", 100_000, 60_000, 0.3)
        assert tranche.gain_ratio == pytest.approx(0.4)
        assert tranche.tax_drag_ratio == pytest.approx(0.28)

    def test_loss_has_no_gain(self) -> None:
        assert Tranche("equity_old", 50_000, 80_000).gain_ratio == 0.0

    def test_empty_position(self) -> None:
        assert Tranche("gold", 0, 10_000).gain_ratio == 0.0


class TestBuildTranches:
    def test_default_household(self, household: Household) -> None:
        kinds = [t.kind for t in build_tranches(household.accounts)]
        assert kinds == ["equity_old", "equity_new", "gold"]

    def test_exempt_gold(self, household: Household) -> None:
        gold = build_tranches(household.accounts)[-1]
        assert gold.exempt_fraction == 1.0
        assert gold.tax_drag_ratio == 0.0

    def test_taxable_gold(self, household: Household) -> None:
        accounts = household.accounts.model_copy(update={"gold_tax_exempt": False})
        gold = build_tranches(accounts)[-1]
        assert gold.exempt_fraction == 0.0
        assert gold.tax_drag_ratio == pytest.approx(0.2)

    def test_inactive_gold_and_empty_positions_dropped(self) -> None:
        accounts = AccountState(equity_new_value=100_000, equity_new_cost=90_000, gold_value=5_000)
        assert [t.kind for t in build_tranches(accounts)] == ["equity_new"]


class TestSellOrder:
    def test_equities_ranked_by_tax_drag(self, household: Household) -> None:
        """New lot drag 0.2 * 0.7 = 0.14 beats the old lot's 0.6."""
        ranked = rank_equities(build_tranches(household.accounts))
        assert [t.kind for t in ranked] == ["equity_new", "equity_old"]

    def test_bear_sells_gold_first(self, household: Household) -> None:
        assert select_sell_order_policy(household.accounts, "bear_deep") == "gold_first"

    def test_gold_last_within_band(self, household: Household) -> None:
        assert select_sell_order_policy(household.accounts, "peak_stable") == "gold_last"

    def test_overweight_gold_first_in_calm_market(self, household: Household) -> None:
        accounts = household.accounts.model_copy(update={"gold_value": 60_000})
        assert select_sell_order_policy(accounts, "peak_stable") == "gold_first"
        assert select_sell_order_policy(accounts, "recovery_in_bear") == "gold_first"
        assert select_sell_order_policy(accounts, "corr_young") == "gold_last"

    def test_equity_only_without_gold(self, household: Household) -> None:
        accounts = household.accounts.model_copy(update={"gold_active": False})
        assert select_sell_order_policy(accounts, "bear_deep") == "equity_only"

    def test_build_order(self, household: Household) -> None:
        tranches = build_tranches(household.accounts)
        first = [t.kind for t in build_sell_order(tranches, "gold_first")]
        last = [t.kind for t in build_sell_order(tranches, "gold_last")]
        only = [t.kind for t in build_sell_order(tranches, "equity_only")]
        assert first == ["gold", "equity_new", "equity_old"]
        assert last == ["equity_new", "equity_old", "gold"]
        assert only == ["equity_new", "equity_old"]

    def test_force_kind(self, household: Household) -> None:
        tranches = build_tranches(household.accounts)
        order = build_sell_order(tranches, "gold_last", force_kind="gold")
        assert [t.kind for t in order] == ["gold"]
