from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional

from retailpos.domain.errors import ValidationError

ACTIVE = "active"
CLOSED = "closed"


def reconcile(opening_amount: Decimal, cash_revenue: Decimal, closing_amount: Decimal) -> tuple[Decimal, Decimal]:
    """Return (expected, difference) for a drawer count.

    Only cash revenue lands in the drawer, so card and mobile sales never
    enter the expected amount. A negative difference is a shortage.
    """
    expected = opening_amount + cash_revenue
    return expected, closing_amount - expected


@dataclass(frozen=True)
class CaisseSession:
    id: str
    user_id: int
    session_name: str
    opening_amount: Decimal
    status: str
    opened_at: str
    description: Optional[str] = None
    closed_at: Optional[str] = None
    closing_amount: Optional[Decimal] = None
    expected_amount: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    closing_notes: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    def close(
        self,
        closing_amount: Decimal,
        cash_revenue: Decimal,
        closed_at: str,
        notes: Optional[str] = None,
    ) -> "CaisseSession":
        if not self.is_active:
            raise ValidationError(f"Caisse session {self.session_name!r} is already closed.")
        if closing_amount < 0:
            raise ValidationError("Closing amount must be >= 0.")
        expected, difference = reconcile(self.opening_amount, cash_revenue, closing_amount)
        return replace(
            self,
            status=CLOSED,
            closed_at=closed_at,
            closing_amount=closing_amount,
            expected_amount=expected,
            difference=difference,
            closing_notes=notes,
        )
