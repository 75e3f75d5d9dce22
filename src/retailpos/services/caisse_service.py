from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from retailpos.domain.caisse import CaisseSession
from retailpos.domain.errors import NotFoundError, SessionAlreadyActiveError, ValidationError
from retailpos.domain.models import SessionDetails, SessionStatistics
from retailpos.domain.money import quantize, to_decimal

log = logging.getLogger("retailpos.caisse")


class CaisseService:
    """Cash-drawer sessions of one cashier."""

    def __init__(self, repo, user_id: int):
        self.repo = repo
        self.user_id = int(user_id)

    def open_session(self, name: str, opening_amount, description: Optional[str] = None) -> CaisseSession:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Session name is required.")
        opening = quantize(to_decimal(opening_amount, "Opening amount"))
        if opening < 0:
            raise ValidationError("Opening amount must be >= 0.")

        if self.repo.get_active_session(self.user_id) is not None:
            raise SessionAlreadyActiveError(
                "You already have an active caisse session. Please close it before opening a new one."
            )

        session = self.repo.create_session(self.user_id, name, opening, (description or "").strip() or None)
        log.info("caisse_opened session=%s user=%s opening=%s", session.id, self.user_id, session.opening_amount)
        return session

    def active_session(self) -> Optional[CaisseSession]:
        return self.repo.get_active_session(self.user_id)

    def list_sessions(self) -> list[CaisseSession]:
        return self.repo.list_sessions(self.user_id)

    def get_statistics(self, session: CaisseSession) -> SessionStatistics:
        return self.repo.session_statistics(session.id)

    def session_details(self, session_id: str) -> SessionDetails:
        details = self.repo.session_details(session_id)
        if details is None:
            raise NotFoundError("Session not found.")
        return details

    def close_session(self, session: CaisseSession, closing_amount, notes: Optional[str] = None) -> CaisseSession:
        closing = quantize(to_decimal(closing_amount, "Closing amount"))
        if closing < 0:
            raise ValidationError("Closing amount must be >= 0.")
        if not session.is_active:
            raise ValidationError(f"Caisse session {session.session_name!r} is already closed.")

        stats = self.get_statistics(session)
        closed = session.close(
            closing_amount=closing,
            cash_revenue=stats.cash_revenue,
            closed_at=datetime.now().replace(microsecond=0).isoformat(sep=" "),
            notes=(notes or "").strip() or None,
        )
        stored = self.repo.save_closed_session(closed)
        log.info(
            "caisse_closed session=%s expected=%s closing=%s difference=%s transactions=%s",
            stored.id,
            closed.expected_amount,
            closed.closing_amount,
            closed.difference,
            stats.transactions_count,
        )
        if closed.difference != Decimal("0"):
            log.warning("caisse_difference session=%s difference=%s", stored.id, closed.difference)
        return stored
