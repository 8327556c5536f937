"""
Pricing Module - Calculator
=============================
Order totals: subtotal, shipping, GST and grand total.
One formula shared by gateway checkout and cash-on-delivery orders.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

from config import settings


@dataclass
class OrderTotals:
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    discount: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "shipping": float(self.shipping),
            "tax": float(self.tax),
            "discount": float(self.discount),
            "total": float(self.total),
        }


def calculate_subtotal(lines: Iterable[Tuple[object, int]]) -> Decimal:
    """Sum of unit price × quantity over (price, quantity) pairs."""
    D = lambda x: Decimal(str(x)) if x is not None else Decimal("0")
    return sum((D(price) * int(qty) for price, qty in lines), Decimal("0"))


def calculate_order_totals(subtotal) -> OrderTotals:
    """
    shipping = 0 when subtotal > FREE_SHIPPING_THRESHOLD, else FLAT_SHIPPING_FEE
    tax      = subtotal × TAX_RATE rounded to whole rupees (half up)
    total    = subtotal + shipping + tax
    """
    d_subtotal = Decimal(str(subtotal))
    if d_subtotal > Decimal(str(settings.FREE_SHIPPING_THRESHOLD)):
        shipping = Decimal("0")
    else:
        shipping = Decimal(str(settings.FLAT_SHIPPING_FEE))

    tax = (d_subtotal * Decimal(str(settings.TAX_RATE))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    total = d_subtotal + shipping + tax
    return OrderTotals(subtotal=d_subtotal, shipping=shipping, tax=tax, total=total)
