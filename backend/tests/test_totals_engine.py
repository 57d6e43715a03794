"""
test_totals_engine.py — Unit tests for tax and grand-total computation.

Tests cover:
  - SGST / CGST at 9% each on the taxed subtotal
  - Round-off to the nearest whole unit (half up)
  - Tax scope variants (supply_and_install vs supply_only)
  - Line, group and document totals share one formula
"""

from types import SimpleNamespace

import pytest

from boq_estimator.services.totals_engine import TotalsEngine, line_amount, round_half_up


def _line(qty, supply, install=0.0):
    return SimpleNamespace(quantity=qty, supply_rate=supply, install_rate=install)


# ===========================================================================
# Class 1: Tax and round-off
# ===========================================================================

class TestTaxAndRoundOff:

    def test_thousand_subtotal(self, totals_engine):
        """1000 → sgst 90, cgst 90, grand 1180."""
        t = totals_engine.from_amounts(1000.0, 0.0)
        assert t.sgst == pytest.approx(90.0)
        assert t.cgst == pytest.approx(90.0)
        assert t.round_off == pytest.approx(0.0)
        assert t.grand_total == pytest.approx(1180.0)

    def test_flush_door_scenario(self, totals_engine):
        """
        Supply 24812 → taxes 2233.08 each, pre-round 29278.16,
        round-off −0.16, grand total 29278.
        """
        t = totals_engine.from_amounts(24812.0, 0.0)
        assert t.sgst == pytest.approx(2233.08)
        assert t.cgst == pytest.approx(2233.08)
        assert t.round_off == pytest.approx(-0.16)
        assert t.grand_total == pytest.approx(29278.0)

    def test_round_off_up(self, totals_engine):
        """100.50 + 18.09 = 118.59 → 119, round-off +0.41."""
        t = totals_engine.from_amounts(100.5, 0.0)
        assert t.grand_total == pytest.approx(119.0)
        assert t.round_off == pytest.approx(0.41)

    @pytest.mark.parametrize("value,expected", [
        (10.5, 11.0), (10.49, 10.0), (0.5, 1.0), (29278.16, 29278.0), (-0.5, 0.0),
    ])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_to_dict_rounds(self, totals_engine):
        d = totals_engine.from_amounts(24812.0, 0.0).to_dict()
        assert d["sgst"] == 2233.08
        assert d["round_off"] == -0.16
        assert d["tax_total"] == 4466.16
        assert d["tax_scope"] == "supply_and_install"


# ===========================================================================
# Class 2: Tax scope
# ===========================================================================

class TestTaxScope:

    def test_supply_and_install_taxes_both(self, totals_engine):
        t = totals_engine.from_amounts(1000.0, 500.0)
        assert t.taxed_subtotal == 1500.0
        assert t.grand_total == pytest.approx(1770.0)

    def test_supply_only_leaves_install_untaxed(self):
        t = TotalsEngine(tax_scope="supply_only").from_amounts(1000.0, 500.0)
        assert t.taxed_subtotal == 1000.0
        assert t.sgst == pytest.approx(90.0)
        assert t.grand_total == pytest.approx(1680.0)

    def test_scope_override_per_call(self, totals_engine):
        t = totals_engine.from_amounts(1000.0, 500.0, tax_scope="supply_only")
        assert t.tax_scope == "supply_only"

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValueError):
            TotalsEngine(tax_scope="install_only")

    @pytest.mark.parametrize("scope", ["supply_and_instal", "install_only", "SUPPLY_ONLY"])
    def test_unknown_scope_per_call_rejected(self, totals_engine, scope):
        with pytest.raises(ValueError):
            totals_engine.from_amounts(1000.0, 500.0, scope)


# ===========================================================================
# Class 3: One formula at every level
# ===========================================================================

class TestConsistency:

    def test_line_amount(self):
        assert line_amount(_line(3, 100.0, 20.0)) == 360.0

    def test_compute_matches_sum_of_lines(self, totals_engine):
        lines = [_line(2, 100.0, 10.0), _line(1, 50.0), _line(4, 12.5, 2.5)]
        t = totals_engine.compute(lines)
        assert t.subtotal == pytest.approx(sum(line_amount(l) for l in lines))
        assert t.supply_amount == pytest.approx(300.0)
        assert t.install_amount == pytest.approx(30.0)

    def test_empty(self, totals_engine):
        t = totals_engine.compute([])
        assert t.grand_total == 0.0
        assert t.round_off == 0.0
