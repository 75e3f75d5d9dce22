from .models import Product, Promotion, CartLine, Totals, SaleItem, SaleTransaction, RecordedSale
from .caisse import CaisseSession
from .cart import Cart
from .errors import (
    ValidationError,
    NotFoundError,
    OutOfStockError,
    InsufficientStockError,
    EmptyCartError,
    InsufficientPaymentError,
    SessionAlreadyActiveError,
    ApiError,
)

__all__ = [
    "Product",
    "Promotion",
    "CartLine",
    "Totals",
    "SaleItem",
    "SaleTransaction",
    "RecordedSale",
    "CaisseSession",
    "Cart",
    "ValidationError",
    "NotFoundError",
    "OutOfStockError",
    "InsufficientStockError",
    "EmptyCartError",
    "InsufficientPaymentError",
    "SessionAlreadyActiveError",
    "ApiError",
]
