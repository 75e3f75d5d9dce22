from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Optional

from retailpos.domain.errors import (
    EmptyCartError,
    InsufficientPaymentError,
    InsufficientStockError,
    NotFoundError,
    OutOfStockError,
    StockShortage,
    ValidationError,
)
from retailpos.domain.models import (
    PAYMENT_METHODS,
    AppliedPromotion,
    CartLine,
    Product,
    Promotion,
    SaleItem,
    SaleTransaction,
    Totals,
)
from retailpos.domain.money import ZERO, quantize, to_decimal
from retailpos.domain.pricing import compute_totals


class Cart:
    """Shopping cart of one POS terminal.

    Stock checks made while building the cart run against the product
    snapshots handed in; ``prepare_sale`` checks again against a fresh
    stock mapping when one is supplied. A failed operation leaves the cart
    as it was.
    """

    def __init__(self, tax_rate: Decimal = ZERO):
        if tax_rate < 0 or tax_rate > 1:
            raise ValidationError("Tax rate must be between 0 and 1.")
        self.tax_rate = tax_rate
        self._lines: dict[int, CartLine] = {}
        self.customer_id: Optional[int] = None
        self.promotion: Optional[Promotion] = None

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def quantity_of(self, product_id: int) -> int:
        line = self._lines.get(int(product_id))
        return line.quantity if line else 0

    def add_item(self, product: Product, quantity: int = 1) -> Totals:
        if quantity < 1:
            raise ValidationError("Qty must be >= 1.")
        line = self._lines.get(product.id)
        if line is None and product.current_stock <= 0:
            raise OutOfStockError(f"{product.name} is out of stock.")
        new_qty = (line.quantity if line else 0) + quantity
        if new_qty > product.current_stock:
            raise InsufficientStockError(
                [StockShortage(product.id, product.name, product.current_stock, new_qty)]
            )
        if line is None:
            self._lines[product.id] = CartLine(product=product, quantity=new_qty)
        else:
            line.product = product
            line.quantity = new_qty
        return self.compute_totals()

    def set_quantity(self, product_id: int, quantity: int) -> Totals:
        product_id = int(product_id)
        if quantity <= 0:
            self.remove_item(product_id)
            return self.compute_totals()
        line = self._lines.get(product_id)
        if line is None:
            raise NotFoundError(f"Product {product_id} is not in the cart.")
        if quantity > line.product.current_stock:
            raise InsufficientStockError(
                [StockShortage(product_id, line.product.name, line.product.current_stock, quantity)]
            )
        line.quantity = quantity
        return self.compute_totals()

    def remove_item(self, product_id: int) -> None:
        self._lines.pop(int(product_id), None)

    def clear(self) -> None:
        self._lines.clear()
        self.customer_id = None
        self.promotion = None

    def select_customer(self, customer_id: Optional[int]) -> None:
        self.customer_id = customer_id

    def apply_promotion(self, promotion: Optional[Promotion]) -> Totals:
        self.promotion = promotion
        return self.compute_totals()

    def compute_totals(self) -> Totals:
        return compute_totals(self._lines.values(), self.promotion, self.tax_rate)

    def find_shortages(self, stock: Optional[Mapping[int, int]] = None) -> list[StockShortage]:
        shortages = []
        for line in self._lines.values():
            if stock is None:
                available = line.product.current_stock
            else:
                available = int(stock.get(line.product.id, 0))
            if line.quantity > available:
                shortages.append(StockShortage(line.product.id, line.product.name, available, line.quantity))
        return shortages

    def prepare_sale(
        self,
        payment_method: str,
        amount_paid: Decimal | None = None,
        caisse_session_id: Optional[str] = None,
        stock: Optional[Mapping[int, int]] = None,
        notes: Optional[str] = None,
    ) -> SaleTransaction:
        """Build the sale for the current cart without clearing it."""
        if self.is_empty():
            raise EmptyCartError("Cart is empty.")

        shortages = self.find_shortages(stock)
        if shortages:
            raise InsufficientStockError(shortages)

        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Unknown payment method: {payment_method!r}.")

        totals = self.compute_totals().rounded(self.tax_rate)
        if payment_method == "cash":
            paid = quantize(to_decimal(amount_paid, "Amount paid")) if amount_paid is not None else ZERO
            if paid < totals.total:
                raise InsufficientPaymentError(totals.total, paid)
            change = paid - totals.total
        else:
            paid = totals.total
            change = ZERO

        applied = None
        if self.promotion is not None:
            applied = AppliedPromotion(promotion_id=self.promotion.id, discount_amount=totals.discount_amount)

        if notes is None:
            notes = f"Amount Paid: {paid:.2f}"
            if change > 0:
                notes += f", Change: {change:.2f}"

        return SaleTransaction(
            items=tuple(
                SaleItem(product_id=line.product.id, quantity=line.quantity, unit_price=line.product.unit_price)
                for line in self._lines.values()
            ),
            payment_method=payment_method,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            tax_amount=totals.tax_amount,
            total_amount=totals.total,
            amount_paid=paid,
            change_given=change,
            customer_id=self.customer_id,
            applied_promotion=applied,
            caisse_session_id=caisse_session_id,
            notes=notes,
        )

    def checkout(
        self,
        payment_method: str,
        amount_paid: Decimal | None = None,
        caisse_session_id: Optional[str] = None,
        stock: Optional[Mapping[int, int]] = None,
        notes: Optional[str] = None,
    ) -> SaleTransaction:
        sale = self.prepare_sale(payment_method, amount_paid, caisse_session_id, stock, notes)
        self.clear()
        return sale
