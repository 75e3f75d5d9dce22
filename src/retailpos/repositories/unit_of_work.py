from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from retailpos.domain.models import RecordedSale, SaleTransaction
from retailpos.repositories.contracts import SalesRepository


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def record_sale(self, sale: SaleTransaction, actor_user_id: int | None = None) -> RecordedSale: ...


@dataclass
class RepositoryUnitOfWork:
    """Unit of Work adapter for the checkout commit.

    Both backends commit a sale atomically on their side (one SQLite
    transaction, one POST). This class keeps services persistence-agnostic.
    """

    repo: SalesRepository

    def __enter__(self) -> "RepositoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def record_sale(self, sale: SaleTransaction, actor_user_id: int | None = None) -> RecordedSale:
        return self.repo.create_sale(sale, actor_user_id=actor_user_id)
