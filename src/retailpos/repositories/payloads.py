"""JSON shapes exchanged with the POS backend.

Every parser either returns a fully typed model or raises
``ValidationError`` naming the offending field, so nothing loosely typed
reaches the cart or the caisse tracker.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from retailpos.domain.caisse import ACTIVE, CLOSED, CaisseSession
from retailpos.domain.errors import ValidationError
from retailpos.domain.models import (
    PROMOTION_TYPES,
    Product,
    Promotion,
    RecordedSale,
    SaleHeader,
    SaleTransaction,
    SessionDetails,
    SessionSummary,
)
from retailpos.domain.money import ZERO, to_decimal


def require(data: Any, key: str, what: str) -> Any:
    if not isinstance(data, dict):
        raise ValidationError(f"{what} must be an object. Received: {type(data).__name__}")
    if key not in data or data[key] is None:
        raise ValidationError(f"{what} is missing '{key}'.")
    return data[key]


def _int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer.")
    try:
        result = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be an integer. Received: {value!r}") from e
    if isinstance(value, float) and value != result:
        raise ValidationError(f"{field} must be an integer. Received: {value!r}")
    return result


def _opt_int(data: dict, key: str, field: str) -> Optional[int]:
    value = data.get(key)
    return None if value is None else _int(value, field)


def _opt_decimal(data: dict, key: str, field: str) -> Optional[Decimal]:
    value = data.get(key)
    return None if value is None else to_decimal(value, field)


def _opt_str(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    return None if value is None else str(value)


def _opt_date(data: dict, key: str, field: str) -> Optional[date]:
    value = data.get(key)
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as e:
        raise ValidationError(f"{field} must be an ISO date. Received: {value!r}") from e


def as_list(data: Any, key: str, what: str) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return data[key]
    raise ValidationError(f"{what} must be a list.")


# ---------- Catalog ----------
def parse_product(data: Any) -> Product:
    pid = _int(require(data, "id", "Product"), "Product id")
    price = to_decimal(require(data, "price", "Product"), f"Price of product {pid}")
    stock = _int(data.get("current_stock") or 0, f"Stock of product {pid}")
    if price < 0:
        raise ValidationError(f"Price of product {pid} must be >= 0.")
    if stock < 0:
        raise ValidationError(f"Stock of product {pid} must be >= 0.")
    return Product(
        id=pid,
        sku=str(data.get("sku") or ""),
        name=str(require(data, "name", "Product")),
        unit_price=price,
        current_stock=stock,
        barcode=_opt_str(data, "barcode"),
        category=_opt_str(data, "category_name"),
    )


def parse_products(data: Any) -> list[Product]:
    return [parse_product(p) for p in as_list(data, "products", "Product list")]


def parse_promotion(data: Any) -> Promotion:
    pid = _int(require(data, "id", "Promotion"), "Promotion id")
    ptype = str(require(data, "type", "Promotion"))
    if ptype not in PROMOTION_TYPES:
        raise ValidationError(f"Promotion {pid} has unsupported type {ptype!r}.")
    value = to_decimal(require(data, "value", "Promotion"), f"Value of promotion {pid}")
    if value < 0:
        raise ValidationError(f"Value of promotion {pid} must be >= 0.")
    if ptype == "percentage" and value > 100:
        raise ValidationError(f"Percentage of promotion {pid} must be <= 100.")
    return Promotion(
        id=pid,
        name=str(data.get("name") or f"Promotion {pid}"),
        type=ptype,
        value=value,
        min_quantity=_opt_int(data, "min_quantity", "Minimum quantity") or 0,
        start_date=_opt_date(data, "start_date", "Start date"),
        end_date=_opt_date(data, "end_date", "End date"),
        max_uses=_opt_int(data, "max_uses", "Max uses"),
        current_uses=_opt_int(data, "current_uses", "Current uses") or 0,
        is_active=bool(data.get("is_active", True)),
    )


def parse_rate(value: Any, field: str) -> Decimal:
    rate = to_decimal(value, field)
    if rate < 0 or rate > 1:
        raise ValidationError(f"{field} must be between 0 and 1. Received: {rate}")
    return rate


# ---------- Sales ----------
def _number(amount: Decimal | None) -> float | None:
    # the backend reads JSON numbers; amounts are already quantized to cents
    return None if amount is None else float(amount)


def sale_to_payload(sale: SaleTransaction) -> dict:
    payload: dict[str, Any] = {
        "paymentMethod": sale.payment_method,
        "items": [
            {
                "productId": it.product_id,
                "quantity": it.quantity,
                "unitPrice": _number(it.unit_price),
                "discountAmount": 0,
            }
            for it in sale.items
        ],
        "subtotal": _number(sale.subtotal),
        "discountAmount": _number(sale.discount_amount),
        "taxAmount": _number(sale.tax_amount),
        "totalAmount": _number(sale.total_amount),
        "amountPaid": _number(sale.amount_paid),
        "changeGiven": _number(sale.change_given),
    }
    if sale.customer_id is not None:
        payload["customerId"] = sale.customer_id
    if sale.applied_promotion is not None:
        payload["appliedPromotions"] = [
            {
                "promotionId": sale.applied_promotion.promotion_id,
                "discountAmount": _number(sale.applied_promotion.discount_amount),
            }
        ]
    if sale.caisse_session_id is not None:
        payload["caisseSessionId"] = sale.caisse_session_id
    if sale.notes:
        payload["notes"] = sale.notes
    return payload


def parse_recorded_sale(data: Any, sale: SaleTransaction) -> RecordedSale:
    return RecordedSale(
        id=_int(require(data, "id", "Sale"), "Sale id"),
        sale_number=str(data.get("sale_number") or ""),
        created_at=str(data.get("created_at") or ""),
        transaction=sale,
    )


def parse_sale_header(data: Any) -> SaleHeader:
    sid = _int(require(data, "id", "Sale"), "Sale id")
    return SaleHeader(
        id=sid,
        sale_number=str(data.get("sale_number") or ""),
        created_at=str(data.get("created_at") or ""),
        payment_method=str(require(data, "payment_method", "Sale")),
        total_amount=to_decimal(require(data, "total_amount", "Sale"), f"Total of sale {sid}"),
        customer_id=_opt_int(data, "customer_id", "Customer id"),
    )


# ---------- Caisse ----------
def parse_session(data: Any) -> CaisseSession:
    sid = str(require(data, "id", "Caisse session"))
    status = str(require(data, "status", "Caisse session"))
    if status not in (ACTIVE, CLOSED):
        raise ValidationError(f"Caisse session {sid} has unknown status {status!r}.")
    opening = to_decimal(require(data, "opening_amount", "Caisse session"), "Opening amount")
    return CaisseSession(
        id=sid,
        user_id=_int(require(data, "user_id", "Caisse session"), "User id"),
        session_name=str(require(data, "session_name", "Caisse session")),
        opening_amount=opening,
        status=status,
        opened_at=str(data.get("opened_at") or ""),
        description=_opt_str(data, "description"),
        closed_at=_opt_str(data, "closed_at"),
        closing_amount=_opt_decimal(data, "closing_amount", "Closing amount"),
        expected_amount=_opt_decimal(data, "expected_amount", "Expected amount"),
        difference=_opt_decimal(data, "difference", "Difference"),
        closing_notes=_opt_str(data, "closing_notes"),
    )


def parse_summary(data: Any) -> SessionSummary:
    if not isinstance(data, dict):
        raise ValidationError("Session summary must be an object.")
    count = data.get("total_transactions", data.get("transactions_count", 0))
    return SessionSummary(
        transactions_count=_int(count, "Transactions count"),
        total_revenue=to_decimal(data.get("total_revenue", 0), "Total revenue"),
        cash_revenue=to_decimal(data.get("cash_revenue", 0), "Cash revenue"),
        card_revenue=to_decimal(data.get("card_revenue", 0), "Card revenue"),
        mobile_revenue=to_decimal(data.get("mobile_revenue", 0), "Mobile revenue"),
        average_transaction=to_decimal(data.get("average_transaction", 0), "Average transaction"),
    )


def parse_session_details(data: Any) -> SessionDetails:
    session = parse_session(require(data, "session", "Session details"))
    sales = tuple(parse_sale_header(s) for s in as_list(data.get("sales", []), "sales", "Session sales"))
    summary = parse_summary(data.get("summary") or {})
    return SessionDetails(session=session, summary=summary, sales=sales)


def session_open_payload(session_name: str, opening_amount: Decimal, description: Optional[str]) -> dict:
    payload: dict[str, Any] = {"sessionName": session_name, "openingAmount": _number(opening_amount)}
    if description:
        payload["description"] = description
    return payload


def session_close_payload(session: CaisseSession) -> dict:
    payload: dict[str, Any] = {
        "closingAmount": _number(session.closing_amount if session.closing_amount is not None else ZERO),
        "expectedAmount": _number(session.expected_amount),
        "difference": _number(session.difference),
    }
    if session.closing_notes:
        payload["notes"] = session.closing_notes
    return payload
