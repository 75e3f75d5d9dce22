from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, Optional

from retailpos.domain.errors import NotFoundError
from retailpos.domain.models import Product, Promotion, StockChange

log = logging.getLogger(__name__)

StockListener = Callable[[list[StockChange]], None]


class CatalogService:
    def __init__(self, repo):
        self.repo = repo
        self._last_stock: dict[int, int] = {}
        self._listeners: list[StockListener] = []

    def list_products(self) -> list[Product]:
        products = self.repo.list_products()
        self._remember({p.id: p.current_stock for p in products})
        return products

    def get_product(self, product_id: int) -> Product:
        p = self.repo.get_product(int(product_id))
        if not p:
            raise NotFoundError("Product not found.")
        return p

    def stock_snapshot(self, product_ids: Iterable[int]) -> dict[int, int]:
        levels = self.repo.stock_levels(product_ids)
        self._remember(levels)
        return levels

    def active_promotions(self, today: Optional[date] = None) -> list[Promotion]:
        today = today or date.today()
        return [p for p in self.repo.list_promotions() if p.is_available(today)]

    def subscribe(self, listener: StockListener) -> Callable[[], None]:
        """Register a stock-changed listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def refresh_stock(self) -> list[StockChange]:
        return self._remember({p.id: p.current_stock for p in self.repo.list_products()})

    def _remember(self, levels: dict[int, int]) -> list[StockChange]:
        changes = [
            StockChange(product_id=pid, previous=self._last_stock[pid], current=level)
            for pid, level in levels.items()
            if pid in self._last_stock and self._last_stock[pid] != level
        ]
        self._last_stock.update(levels)
        if changes:
            self._notify(changes)
        return changes

    def _notify(self, changes: list[StockChange]) -> None:
        for listener in list(self._listeners):
            try:
                listener(changes)
            except Exception:
                log.exception("stock_listener_failed listener=%r", listener)
