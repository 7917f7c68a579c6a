from __future__ import annotations

from decimal import Decimal

import pytest

from dealerdb.apps.sales import tax


def test_intra_state_line_splits_tax_in_halves():
    line = tax.compute_line(Decimal("112000"), Decimal("0"), Decimal("12"), inter_state=False)

    assert line.taxable_value == Decimal("100000.00")
    assert line.cgst_rate == Decimal("6")
    assert line.cgst_amount == Decimal("6000.00")
    assert line.sgst_amount == Decimal("6000.00")
    assert line.igst_amount == Decimal("0")
    assert line.net == Decimal("112000.00")


def test_inter_state_line_charges_igst():
    line = tax.compute_line("128000", "0", "28", inter_state=True)

    assert line.taxable_value == Decimal("100000.00")
    assert line.igst_rate == Decimal("28")
    assert line.igst_amount == Decimal("28000.00")
    assert line.cgst_amount == Decimal("0")


def test_discount_reduces_taxable_value_and_halves_reconcile():
    line = tax.compute_line(Decimal("85000"), Decimal("1000.55"), Decimal("28"))

    assert line.net == Decimal("83999.45")
    assert line.taxable_value == Decimal("65624.57")
    assert line.cgst_amount + line.sgst_amount + line.taxable_value == line.net


def test_discount_larger_than_price_is_rejected():
    with pytest.raises(ValueError):
        tax.compute_line(Decimal("100"), Decimal("101"), Decimal("28"))


def test_zero_rate_has_no_tax():
    line = tax.compute_line("5000", None, None)
    assert line.taxable_value == Decimal("5000.00")
    assert line.tax == Decimal("0")


def test_exclusive_line_adds_gst_on_top_of_taxable_value():
    line = tax.compute_exclusive_line(Decimal("2"), Decimal("450"), Decimal("100"), Decimal("18"))

    assert line.taxable_value == Decimal("800.00")
    assert line.cgst_amount == Decimal("72.00")
    assert line.sgst_amount == Decimal("72.00")
    assert line.net == Decimal("944.00")

    inter = tax.compute_exclusive_line(Decimal("2"), Decimal("450"), Decimal("100"), Decimal("18"), inter_state=True)
    assert inter.igst_rate == Decimal("18")
    assert inter.igst_amount == Decimal("144.00")
    assert inter.cgst_amount == Decimal("0")

    with pytest.raises(ValueError):
        tax.compute_exclusive_line(Decimal("1"), Decimal("100"), Decimal("101"), Decimal("18"))


def test_totals_round_to_rupee_and_record_round_off():
    lines = [
        tax.compute_line("85000.40", "0", "28"),
        tax.compute_line("1000", "0", "18"),
    ]
    totals = tax.compute_totals(lines, {"Registration": "1500.35", "Insurance": Decimal("4200")})

    assert totals.items_total == Decimal("86000.40")
    assert totals.extra_charges_total == Decimal("5700.35")
    assert totals.grand_total == Decimal("91701")
    assert totals.round_off == Decimal("0.25")


def test_state_comparison():
    assert tax.is_inter_state("Tamil Nadu", "Kerala") is True
    assert tax.is_inter_state(" kerala ", "Kerala") is False
    assert tax.is_inter_state(None, "Kerala") is False
    assert tax.is_inter_state("Kerala", "") is False
