from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Optional

import requests

from retailpos.domain.caisse import CaisseSession
from retailpos.domain.errors import (
    ApiError,
    InsufficientStockError,
    NotFoundError,
    SessionAlreadyActiveError,
    StockShortage,
    ValidationError,
)
from retailpos.domain.models import (
    Product,
    Promotion,
    RecordedSale,
    SaleTransaction,
    SessionDetails,
    SessionStatistics,
)
from retailpos.repositories import payloads

log = logging.getLogger("retailpos.api")


class HttpRepository:
    """Client for the POS REST backend.

    Failures are never retried here: 4xx answers become domain errors and
    everything else surfaces as ``ApiError``.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()
        self.http.headers.update({"Content-Type": "application/json"})
        if token:
            self.http.headers.update({"Authorization": f"Bearer {token}"})

    def _request(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.http.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            log.warning("api_request_failed method=%s url=%s error=%s", method, url, e)
            raise ApiError(f"Request to {path} failed: {e}") from e

        if r.status_code >= 400:
            raise self._error_for(r, path)
        if r.status_code == 204 or not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {path}.", r.status_code) from e

    def _error_for(self, r, path: str) -> Exception:
        try:
            data = r.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        message = str(data.get("message") or f"HTTP {r.status_code} on {path}")
        log.warning("api_error status=%s path=%s message=%s", r.status_code, path, message)

        if r.status_code in (400, 409, 422):
            if "insufficient stock" in message.lower():
                shortage = StockShortage(
                    product_id=int(data.get("productId") or 0),
                    name=message.split("for", 1)[-1].strip() if "for" in message else "product",
                    available=int(data.get("available") or 0),
                    requested=int(data.get("requested") or 0),
                )
                return InsufficientStockError([shortage])
            if "active caisse session" in message.lower():
                return SessionAlreadyActiveError(message)
            errors = data.get("errors")
            if isinstance(errors, list) and errors:
                details = ", ".join(str(e.get("msg", e)) if isinstance(e, dict) else str(e) for e in errors)
                return ValidationError(details)
            return ValidationError(message)
        if r.status_code == 404:
            return NotFoundError(message)
        return ApiError(message, r.status_code)

    # ---------- Catalog ----------
    def list_products(self) -> list[Product]:
        return payloads.parse_products(self._request("GET", "/api/products"))

    def get_product(self, product_id: int) -> Optional[Product]:
        try:
            data = self._request("GET", f"/api/products/{int(product_id)}")
        except NotFoundError:
            return None
        return payloads.parse_product(data)

    def stock_levels(self, product_ids: Iterable[int]) -> dict[int, int]:
        wanted = {int(pid) for pid in product_ids}
        if not wanted:
            return {}
        return {p.id: p.current_stock for p in self.list_products() if p.id in wanted}

    def list_promotions(self) -> list[Promotion]:
        data = self._request("GET", "/api/promotions")
        promotions = []
        for raw in payloads.as_list(data, "promotions", "Promotion list"):
            try:
                promotions.append(payloads.parse_promotion(raw))
            except ValidationError as e:
                # buy_x_get_y and friends are not applied at the till
                log.info("promotion_skipped reason=%s", e)
        return promotions

    # ---------- Settings ----------
    def get_tax_settings(self) -> dict:
        return self._request("GET", "/api/settings/taxes") or {}

    def get_system_settings(self) -> dict:
        return self._request("GET", "/api/settings/system") or {}

    # ---------- Sales ----------
    def create_sale(self, sale: SaleTransaction, actor_user_id: int | None = None) -> RecordedSale:
        data = self._request("POST", "/api/sales", payloads.sale_to_payload(sale))
        return payloads.parse_recorded_sale(data, sale)

    # ---------- Caisse sessions ----------
    def create_session(
        self, user_id: int, session_name: str, opening_amount: Decimal, description: Optional[str]
    ) -> CaisseSession:
        body = payloads.session_open_payload(session_name, opening_amount, description)
        data = self._request("POST", "/api/caisse/sessions", body)
        return payloads.parse_session(payloads.require(data, "session", "Caisse response"))

    def get_active_session(self, user_id: int) -> Optional[CaisseSession]:
        try:
            data = self._request("GET", "/api/caisse/active-session")
        except NotFoundError:
            return None
        return payloads.parse_session(data)

    def list_sessions(self, user_id: int) -> list[CaisseSession]:
        data = self._request("GET", "/api/caisse/sessions")
        return [payloads.parse_session(s) for s in payloads.as_list(data, "sessions", "Session list")]

    def session_statistics(self, session_id: str) -> SessionStatistics:
        details = self.session_details(session_id)
        if details is None:
            raise NotFoundError("Session not found")
        return details.summary.statistics

    def session_details(self, session_id: str) -> Optional[SessionDetails]:
        try:
            data = self._request("GET", f"/api/caisse/sessions/{session_id}")
        except NotFoundError:
            return None
        return payloads.parse_session_details(data)

    def save_closed_session(self, session: CaisseSession) -> CaisseSession:
        data = self._request("PUT", f"/api/caisse/sessions/{session.id}/close", payloads.session_close_payload(session))
        return payloads.parse_session(payloads.require(data, "session", "Caisse response"))
