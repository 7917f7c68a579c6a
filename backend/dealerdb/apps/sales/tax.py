"""
GST arithmetic for vehicle invoices and job cards.

Vehicle prices are GST inclusive: the taxable value is backed out of the net
price and the difference is the tax. Workshop lines add GST on top. Either
way the tax is split into CGST/SGST halves for intra-state
sales or charged whole as IGST across states.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional

PAISE = Decimal("0.01")
RUPEE = Decimal("1")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(PAISE, rounding=ROUND_HALF_UP)


def is_inter_state(customer_state: Optional[str], dealer_state: Optional[str]) -> bool:
    """Blank on either side is treated as an intra-state sale."""
    customer_state = (customer_state or "").strip().lower()
    dealer_state = (dealer_state or "").strip().lower()
    if not customer_state or not dealer_state:
        return False
    return customer_state != dealer_state


@dataclass(frozen=True)
class LineTax:
    net: Decimal
    taxable_value: Decimal
    cgst_rate: Decimal
    cgst_amount: Decimal
    sgst_rate: Decimal
    sgst_amount: Decimal
    igst_rate: Decimal
    igst_amount: Decimal

    @property
    def tax(self) -> Decimal:
        return self.cgst_amount + self.sgst_amount + self.igst_amount


def compute_line(price, discount=None, gst_rate=None, *, inter_state: bool = False) -> LineTax:
    price = to_decimal(price)
    discount = to_decimal(discount)
    rate = to_decimal(gst_rate)
    if discount < ZERO or discount > price:
        raise ValueError("discount must be between zero and the price")

    net = round_money(price - discount)
    taxable = round_money(net / (1 + rate / 100))
    return _split(net, taxable, net - taxable, rate, inter_state=inter_state)


def compute_exclusive_line(quantity, rate, discount=None, gst_rate=None, *, inter_state: bool = False) -> LineTax:
    """Workshop lines are priced before tax; GST is charged on top of the taxable value."""
    gross = round_money(to_decimal(quantity) * to_decimal(rate))
    discount = to_decimal(discount)
    gst = to_decimal(gst_rate)
    if discount < ZERO or discount > gross:
        raise ValueError("discount must be between zero and the line amount")

    taxable = round_money(gross - discount)
    tax = round_money(taxable * gst / 100)
    return _split(taxable + tax, taxable, tax, gst, inter_state=inter_state)


def _split(net: Decimal, taxable: Decimal, tax: Decimal, rate: Decimal, *, inter_state: bool) -> LineTax:
    if inter_state:
        return LineTax(
            net=net,
            taxable_value=taxable,
            cgst_rate=ZERO,
            cgst_amount=ZERO,
            sgst_rate=ZERO,
            sgst_amount=ZERO,
            igst_rate=rate,
            igst_amount=tax,
        )
    cgst = round_money(tax / 2)
    half_rate = rate / 2
    return LineTax(
        net=net,
        taxable_value=taxable,
        cgst_rate=half_rate,
        cgst_amount=cgst,
        sgst_rate=half_rate,
        sgst_amount=tax - cgst,
        igst_rate=ZERO,
        igst_amount=ZERO,
    )


@dataclass(frozen=True)
class InvoiceTotals:
    items_total: Decimal
    taxable_total: Decimal
    cgst_total: Decimal
    sgst_total: Decimal
    igst_total: Decimal
    extra_charges_total: Decimal
    round_off: Decimal
    grand_total: Decimal


def compute_totals(lines: Iterable[LineTax], extra_charges: Optional[Mapping[str, object]] = None) -> InvoiceTotals:
    lines = list(lines)
    items_total = sum((line.net for line in lines), ZERO)
    extras = sum((round_money(v) for v in (extra_charges or {}).values()), ZERO)
    exact = items_total + extras
    billed = exact.quantize(RUPEE, rounding=ROUND_HALF_UP)
    return InvoiceTotals(
        items_total=items_total,
        taxable_total=sum((line.taxable_value for line in lines), ZERO),
        cgst_total=sum((line.cgst_amount for line in lines), ZERO),
        sgst_total=sum((line.sgst_amount for line in lines), ZERO),
        igst_total=sum((line.igst_amount for line in lines), ZERO),
        extra_charges_total=extras,
        round_off=billed - exact,
        grand_total=billed,
    )
