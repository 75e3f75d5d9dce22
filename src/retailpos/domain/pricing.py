from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from retailpos.domain.models import CartLine, Promotion, Totals
from retailpos.domain.money import ZERO

HUNDRED = Decimal("100")


def promotion_discount(promotion: Optional[Promotion], subtotal: Decimal) -> Decimal:
    """Discount granted by ``promotion`` on a pre-tax subtotal.

    ``min_quantity`` is not checked: every selected promotion applies.
    The result never exceeds the subtotal.
    """
    if promotion is None or subtotal <= 0:
        return ZERO
    if promotion.type == "percentage":
        discount = subtotal * (promotion.value / HUNDRED)
    elif promotion.type == "fixed":
        discount = promotion.value
    else:
        return ZERO
    return min(max(discount, ZERO), subtotal)


def compute_totals(lines: Iterable[CartLine], promotion: Optional[Promotion], tax_rate: Decimal) -> Totals:
    subtotal = sum((line.line_subtotal for line in lines), ZERO)
    discount = promotion_discount(promotion, subtotal)
    net = subtotal - discount
    tax = net * tax_rate
    return Totals(
        subtotal=subtotal,
        discount_amount=discount,
        net_after_discount=net,
        tax_amount=tax,
        total=net + tax,
    )
