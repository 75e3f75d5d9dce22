from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence


class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class OutOfStockError(AppError):
    pass


@dataclass(frozen=True)
class StockShortage:
    product_id: int
    name: str
    available: int
    requested: int

    def message(self) -> str:
        return f"Only {self.available} units of {self.name} available, {self.requested} requested"


class InsufficientStockError(AppError):
    def __init__(self, shortages: Sequence[StockShortage] | str):
        if isinstance(shortages, str):
            self.shortages: tuple[StockShortage, ...] = ()
            super().__init__(shortages)
            return
        self.shortages = tuple(shortages)
        super().__init__("; ".join(s.message() for s in self.shortages))


class EmptyCartError(AppError):
    pass


class InsufficientPaymentError(AppError):
    def __init__(self, total: Decimal, amount_paid: Decimal):
        self.total = total
        self.amount_paid = amount_paid
        self.shortfall = total - amount_paid
        super().__init__(
            f"Insufficient payment: need {self.shortfall:.2f} more (total {total:.2f}, paid {amount_paid:.2f})"
        )


class SessionAlreadyActiveError(AppError):
    pass


class ApiError(AppError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
