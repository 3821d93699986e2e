"""Tests for the tax-aware sale allocator."""

from __future__ import annotations

import pytest

from drawdownplan.config.schema import (
    AccountState,
    EngineConfig,
    Household,
    TaxInputs,
    TaxSettings,
)
from drawdownplan.taxes.capital_gains import (
    SaleCaps,
    SaleLine,
    SaleResult,
    allocate_sale,
    combined_tax_rate,
    merge_sale_results,
)

RATE = 0.25 * 1.055
NEW_LOT_FACTOR = 1.0 - 0.2 * 0.7 * RATE


def _by_kind(result: SaleResult) -> dict[str, tuple[float, float]]:
    return {line.kind: (line.gross, line.tax) for line in result.breakdown}


class TestCombinedRate:
    def test_without_church_tax(self, config: EngineConfig) -> None:
        assert combined_tax_rate(TaxInputs(), config.taxes) == pytest.approx(0.26375)

    def test_with_church_tax(self, config: EngineConfig) -> None:
        rate = combined_tax_rate(TaxInputs(church_tax_rate=0.09), config.taxes)
        assert rate == pytest.approx(0.28625)


class TestAllocateSale:
    def test_cheapest_lot_first_with_allowance(
        self, config: EngineConfig, household: Household
    ) -> None:
        """The low-drag new lot covers the request; the allowance shields 1000 of gain."""
        result = allocate_sale(
            10_000, household.accounts, household.taxes, SaleCaps(), "peak_stable", config
        )
        gross = (10_000 - 1_000 * RATE) / NEW_LOT_FACTOR
        assert [line.kind for line in result.breakdown] == ["equity_new"]
        assert result.total_gross == pytest.approx(gross)
        assert result.total_tax == pytest.approx((gross * 0.14 - 1_000) * RATE)
        assert result.allowance_used == pytest.approx(1_000)
        assert result.achieved_refill == pytest.approx(10_000)

    def test_sale_within_allowance_is_untaxed(
        self, config: EngineConfig, household: Household
    ) -> None:
        result = allocate_sale(
            5_000, household.accounts, household.taxes, SaleCaps(), "peak_stable", config
        )
        assert result.total_gross == pytest.approx(5_000)
        assert result.total_tax == 0.0
        assert result.allowance_used == pytest.approx(700)
        assert result.achieved_refill == pytest.approx(5_000)

    def test_gross_up_meets_request_without_allowance(
        self, config: EngineConfig, household: Household
    ) -> None:
        taxes = TaxInputs(annual_allowance=0)
        result = allocate_sale(
            10_000, household.accounts, taxes, SaleCaps(), "peak_stable", config
        )
        assert result.achieved_refill == pytest.approx(10_000)
        assert result.allowance_used == 0.0

    @pytest.mark.parametrize("allowance", [0.0, 1_000.0])
    @pytest.mark.parametrize("requested", [500.0, 7_500.0, 25_000.0, 150_000.0, 480_000.0])
    def test_refill_never_exceeds_request(
        self, config: EngineConfig, household: Household, requested: float, allowance: float
    ) -> None:
        taxes = TaxInputs(annual_allowance=allowance)
        for regime in ("peak_stable", "bear_deep"):
            result = allocate_sale(
                requested, household.accounts, taxes, SaleCaps(), regime, config
            )
            assert 0.0 <= result.achieved_refill <= requested + 1e-6

    def test_shortfall_is_reported(self, config: EngineConfig, household: Household) -> None:
        result = allocate_sale(
            10_000_000, household.accounts, household.taxes, SaleCaps(), "peak_stable", config
        )
        assert result.total_gross == pytest.approx(500_000)
        assert result.achieved_refill < 10_000_000

    def test_bear_sells_gold_first_and_allowance_in_order(
        self, config: EngineConfig, household: Household
    ) -> None:
        """Exempt gold is sold first, so the allowance falls to the next lot."""
        result = allocate_sale(
            50_000, household.accounts, household.taxes, SaleCaps(), "bear_deep", config
        )
        assert [line.kind for line in result.breakdown] == ["gold", "equity_new"]
        lines = _by_kind(result)
        assert lines["gold"] == (pytest.approx(25_000), 0.0)
        assert result.allowance_used == pytest.approx(1_000)

    def test_force_kind_with_gold_floor(
        self, config: EngineConfig, household: Household
    ) -> None:
        caps = SaleCaps(min_gold=20_000, force_kind="gold")
        result = allocate_sale(
            10_000, household.accounts, household.taxes, caps, "peak_stable", config
        )
        assert _by_kind(result) == {"gold": (pytest.approx(5_000), 0.0)}
        assert result.achieved_refill == pytest.approx(5_000)

    def test_gold_floor_above_holding_sells_nothing(
        self, config: EngineConfig, household: Household
    ) -> None:
        caps = SaleCaps(min_gold=30_000, force_kind="gold")
        result = allocate_sale(
            10_000, household.accounts, household.taxes, caps, "peak_stable", config
        )
        assert result.breakdown == ()
        assert result.achieved_refill == 0.0
        assert result.effective_tax_rate == 0.0

    def test_degenerate_factor_falls_back(self, config: EngineConfig) -> None:
        """With a 100% tax on pure gain the gross-up uses the 1.5x fallback."""
        punitive = config.model_copy(
            update={"taxes": TaxSettings(capital_gains_rate=1.0, solidarity_surcharge=0.0)}
        )
        accounts = AccountState(equity_old_value=100_000, equity_old_cost=0)
        result = allocate_sale(
            10_000, accounts, TaxInputs(annual_allowance=0), SaleCaps(), "side_long", punitive
        )
        assert result.total_gross == pytest.approx(15_000)
        assert result.achieved_refill == 0.0

    def test_losses_are_untaxed(self, config: EngineConfig) -> None:
        accounts = AccountState(equity_old_value=50_000, equity_old_cost=80_000)
        result = allocate_sale(
            10_000, accounts, TaxInputs(), SaleCaps(), "side_long", config
        )
        assert result.total_tax == 0.0
        assert result.achieved_refill == pytest.approx(10_000)


class TestMerge:
    def _sale(self, lines: tuple[SaleLine, ...], allowance: float = 0.0) -> SaleResult:
        gross = sum(line.gross for line in lines)
        tax = sum(line.tax for line in lines)
        return SaleResult(tax, gross, gross - tax, lines, allowance)

    def test_none_is_identity(self) -> None:
        sale = self._sale((SaleLine("gold", 1_000, 0),))
        assert merge_sale_results(None, sale) is sale
        assert merge_sale_results(sale, None) is sale
        assert merge_sale_results(None, None) is None

    def test_sums_and_merges_by_kind(self) -> None:
        a = self._sale((SaleLine("equity_new", 10_000, 100), SaleLine("gold", 2_000, 0)), 500)
        b = self._sale((SaleLine("equity_new", 5_000, 50),), 300)
        merged = merge_sale_results(a, b)
        assert merged is not None
        assert merged.total_gross == pytest.approx(17_000)
        assert merged.total_tax == pytest.approx(150)
        assert merged.achieved_refill == pytest.approx(16_850)
        assert merged.allowance_used == pytest.approx(800)
        assert _by_kind(merged) == {"equity_new": (15_000, 150), "gold": (2_000, 0)}
        assert merged.gross_for("equity_new") == pytest.approx(15_000)

    def test_commutative_up_to_line_order(self) -> None:
        a = self._sale((SaleLine("equity_old", 8_000, 900),))
        b = self._sale((SaleLine("gold", 3_000, 0), SaleLine("equity_old", 1_000, 100)))
        ab = merge_sale_results(a, b)
        ba = merge_sale_results(b, a)
        assert ab is not None and ba is not None
        assert _by_kind(ab) == _by_kind(ba)
        assert ab.total_tax == pytest.approx(ba.total_tax)
        assert ab.total_gross == pytest.approx(ba.total_gross)

    def test_associative(self) -> None:
        a = self._sale((SaleLine("equity_new", 4_000, 40), SaleLine("gold", 1_000, 0)), 200)
        b = self._sale((SaleLine("equity_old", 6_000, 700),), 300)
        c = self._sale((SaleLine("gold", 2_500, 0), SaleLine("equity_new", 1_500, 15)), 100)
        left = merge_sale_results(merge_sale_results(a, b), c)
        right = merge_sale_results(a, merge_sale_results(b, c))
        assert left is not None and right is not None
        assert _by_kind(left) == _by_kind(right)
        assert left.total_gross == pytest.approx(right.total_gross)
        assert left.total_tax == pytest.approx(right.total_tax)
        assert left.achieved_refill == pytest.approx(right.achieved_refill)
        assert left.allowance_used == pytest.approx(right.allowance_used)
