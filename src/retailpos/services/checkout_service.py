from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Optional

from retailpos.domain.cart import Cart
from retailpos.domain.errors import AppError
from retailpos.domain.models import RecordedSale
from retailpos.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork

log = logging.getLogger("retailpos.sales")


class CheckoutService:
    def __init__(
        self,
        repo,
        catalog,
        settings,
        uow_factory: Callable[[], UnitOfWork] | None = None,
        actor_user_id: int | None = None,
    ):
        self.repo = repo
        self.catalog = catalog
        self.settings = settings
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))
        self.actor_user_id = actor_user_id

    def new_cart(self) -> Cart:
        return Cart(tax_rate=self.settings.get_tax_rate())

    def checkout(
        self,
        cart: Cart,
        payment_method: str,
        amount_paid: Decimal | None = None,
        caisse_session_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> RecordedSale:
        """
        Revalidate the cart against live stock, commit the sale, then clear
        the cart. The cart is untouched when any step fails.
        """
        try:
            stock = self.catalog.stock_snapshot(line.product.id for line in cart.lines)
            sale = cart.prepare_sale(
                payment_method,
                amount_paid=amount_paid,
                caisse_session_id=caisse_session_id,
                stock=stock,
                notes=notes,
            )
            with self.uow_factory() as uow:
                recorded = uow.record_sale(sale, actor_user_id=self.actor_user_id)
        except AppError as e:
            log.warning("checkout_rejected reason=%s error=%s", type(e).__name__, e)
            raise

        cart.clear()
        log.info(
            "sale_recorded sale_id=%s number=%s items=%s total=%s method=%s session=%s",
            recorded.id,
            recorded.sale_number,
            len(sale.items),
            sale.total_amount,
            sale.payment_method,
            sale.caisse_session_id,
        )
        return recorded
