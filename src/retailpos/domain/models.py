from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from retailpos.domain.money import ZERO, quantize

if TYPE_CHECKING:
    from retailpos.domain.caisse import CaisseSession

PAYMENT_METHODS = ("cash", "card", "mobile")
PROMOTION_TYPES = ("percentage", "fixed")


@dataclass(frozen=True)
class Product:
    id: int
    sku: str
    name: str
    unit_price: Decimal
    current_stock: int
    barcode: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class Promotion:
    id: int
    name: str
    type: str
    value: Decimal
    min_quantity: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_uses: Optional[int] = None
    current_uses: int = 0
    is_active: bool = True

    def is_available(self, today: date) -> bool:
        if not self.is_active:
            return False
        if self.start_date is not None and self.start_date > today:
            return False
        if self.end_date is not None and self.end_date < today:
            return False
        if self.max_uses is not None and self.current_uses >= self.max_uses:
            return False
        return True


@dataclass
class CartLine:
    product: Product
    quantity: int

    @property
    def line_subtotal(self) -> Decimal:
        return self.product.unit_price * self.quantity


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    net_after_discount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO

    def rounded(self, tax_rate: Decimal) -> "Totals":
        """Cent amounts that still add up: net and total derive from the rounded parts."""
        subtotal = quantize(self.subtotal)
        discount = quantize(self.discount_amount)
        net = subtotal - discount
        tax = quantize(net * tax_rate)
        return Totals(
            subtotal=subtotal,
            discount_amount=discount,
            net_after_discount=net,
            tax_amount=tax,
            total=net + tax,
        )


@dataclass(frozen=True)
class SaleItem:
    product_id: int
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class AppliedPromotion:
    promotion_id: int
    discount_amount: Decimal


@dataclass(frozen=True)
class SaleTransaction:
    items: tuple[SaleItem, ...]
    payment_method: str
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    change_given: Decimal
    customer_id: Optional[int] = None
    applied_promotion: Optional[AppliedPromotion] = None
    caisse_session_id: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class RecordedSale:
    id: int
    sale_number: str
    created_at: str
    transaction: SaleTransaction


@dataclass(frozen=True)
class SaleHeader:
    id: int
    sale_number: str
    created_at: str
    payment_method: str
    total_amount: Decimal
    customer_id: Optional[int] = None


@dataclass(frozen=True)
class StockChange:
    product_id: int
    previous: int
    current: int


@dataclass(frozen=True)
class SessionStatistics:
    transactions_count: int = 0
    total_revenue: Decimal = ZERO
    cash_revenue: Decimal = ZERO


@dataclass(frozen=True)
class SessionSummary:
    transactions_count: int = 0
    total_revenue: Decimal = ZERO
    cash_revenue: Decimal = ZERO
    card_revenue: Decimal = ZERO
    mobile_revenue: Decimal = ZERO
    average_transaction: Decimal = ZERO

    @property
    def statistics(self) -> SessionStatistics:
        return SessionStatistics(
            transactions_count=self.transactions_count,
            total_revenue=self.total_revenue,
            cash_revenue=self.cash_revenue,
        )


@dataclass(frozen=True)
class SessionDetails:
    session: CaisseSession
    summary: SessionSummary
    sales: tuple[SaleHeader, ...] = field(default_factory=tuple)

