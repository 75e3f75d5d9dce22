from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional, Protocol

from retailpos.domain.caisse import CaisseSession
from retailpos.domain.models import (
    Product,
    Promotion,
    RecordedSale,
    SaleTransaction,
    SessionDetails,
    SessionStatistics,
)


class CatalogRepository(Protocol):
    def list_products(self) -> list[Product]: ...
    def get_product(self, product_id: int) -> Optional[Product]: ...
    def stock_levels(self, product_ids: Iterable[int]) -> dict[int, int]: ...
    def list_promotions(self) -> list[Promotion]: ...


class SettingsRepository(Protocol):
    def get_tax_settings(self) -> dict: ...
    def get_system_settings(self) -> dict: ...


class SalesRepository(Protocol):
    def create_sale(self, sale: SaleTransaction, actor_user_id: int | None = None) -> RecordedSale: ...


class CaisseRepository(Protocol):
    def create_session(
        self, user_id: int, session_name: str, opening_amount: Decimal, description: Optional[str]
    ) -> CaisseSession: ...
    def get_active_session(self, user_id: int) -> Optional[CaisseSession]: ...
    def list_sessions(self, user_id: int) -> list[CaisseSession]: ...
    def session_statistics(self, session_id: str) -> SessionStatistics: ...
    def session_details(self, session_id: str) -> Optional[SessionDetails]: ...
    def save_closed_session(self, session: CaisseSession) -> CaisseSession: ...


class PosRepository(CatalogRepository, SettingsRepository, SalesRepository, CaisseRepository, Protocol):
    pass
