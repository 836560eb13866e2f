"""
Quote pricing: the stored quote amount and the document totals.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

TAX_RATE = 10.0


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_quote_amount(
    service_price: float,
    materials_total: float,
    hours: float,
    labor_rate: float,
    discount: float,
) -> int:
    """Whole-euro amount stored on the quote (discount applied, before tax)."""
    base = service_price + materials_total + hours * labor_rate
    return round_half_up(base - base * (discount / 100))


@dataclass
class QuoteTotals:
    subtotal: float
    discount: float
    discount_amount: float
    tax_rate: float
    tax: float
    total: float
    date: Optional[date]


def compute_totals(items: Iterable, discount: float, issue_date: Optional[date], tax_rate: float = TAX_RATE) -> QuoteTotals:
    # Section lines carry a zero total so they can be summed blindly
    subtotal = sum(item.total for item in items)
    discount = float(discount or 0)
    discount_amount = subtotal * (discount / 100)
    after_discount = subtotal - discount_amount
    tax = after_discount * (tax_rate / 100)
    return QuoteTotals(
        subtotal=subtotal,
        discount=discount,
        discount_amount=discount_amount,
        tax_rate=tax_rate,
        tax=tax,
        total=after_discount + tax,
        date=issue_date,
    )
