import logging
import re
from decimal import Decimal
from pathlib import Path

import pytest

from conftest import make_product, make_promotion
from retailpos.domain.cart import Cart
from retailpos.domain.errors import (
    ApiError,
    EmptyCartError,
    InsufficientPaymentError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from retailpos.repositories.sqlite_repo import SqliteRepository
from retailpos.services.catalog_service import CatalogService
from retailpos.services.checkout_service import CheckoutService
from retailpos.services.settings_service import SettingsService


def _scenario_b_cart() -> Cart:
    cart = Cart(tax_rate=Decimal("0.08"))
    cart.add_item(make_product(price="10.00", stock=5), 3)
    cart.apply_promotion(make_promotion(type="percentage", value="20"))
    return cart


def _setup(tmp_path: Path, tax_rate: str = "0"):
    repo = SqliteRepository(tmp_path / "checkout.db")
    repo.init_db()
    repo.set_setting("default_tax_rate", tax_rate)
    catalog = CatalogService(repo)
    checkout = CheckoutService(repo, catalog, SettingsService(repo), actor_user_id=1)
    return repo, catalog, checkout


def test_scenario_c_cash_change_is_computed():
    cart = _scenario_b_cart()

    sale = cart.checkout("cash", amount_paid=Decimal("30.00"))

    assert sale.total_amount == Decimal("25.92")
    assert sale.amount_paid == Decimal("30.00")
    assert sale.change_given == Decimal("4.08")
    assert sale.applied_promotion is not None
    assert sale.applied_promotion.discount_amount == Decimal("6.00")
    assert cart.is_empty()


def test_scenario_c_insufficient_cash_fails_and_keeps_cart():
    cart = _scenario_b_cart()

    with pytest.raises(InsufficientPaymentError) as exc:
        cart.checkout("cash", amount_paid=Decimal("20.00"))

    assert exc.value.shortfall == Decimal("5.92")
    assert cart.quantity_of(1) == 3
    assert cart.promotion is not None


def test_non_cash_payment_defaults_amount_paid_to_total():
    cart = _scenario_b_cart()

    sale = cart.checkout("card")

    assert sale.amount_paid == sale.total_amount == Decimal("25.92")
    assert sale.change_given == 0


def test_unknown_payment_method_is_rejected():
    cart = _scenario_b_cart()
    with pytest.raises(ValidationError):
        cart.checkout("cheque")
    assert not cart.is_empty()


def test_checkout_of_empty_cart_fails():
    with pytest.raises(EmptyCartError):
        Cart().checkout("card")


def test_scenario_e_stock_drop_reports_every_offending_line():
    cart = Cart()
    cart.add_item(make_product(1, stock=5, name="Tea"), 4)
    cart.add_item(make_product(2, stock=5, name="Mug"), 2)
    cart.add_item(make_product(3, stock=5, name="Spoon"), 5)

    with pytest.raises(InsufficientStockError) as exc:
        cart.checkout("card", stock={1: 2, 2: 9})

    shortages = {s.product_id: (s.available, s.requested) for s in exc.value.shortages}
    assert shortages == {1: (2, 4), 3: (0, 5)}
    assert "Only 2 units of Tea available, 4 requested" in str(exc.value)
    assert [line.quantity for line in cart.lines] == [4, 2, 5]


def test_checkout_service_records_sale_and_updates_backend(tmp_path: Path):
    repo, catalog, checkout = _setup(tmp_path, tax_rate="0.08")
    pid = repo.add_product("SKU-1", "Notebook", Decimal("10.00"), 5)
    promo_id = repo.add_promotion("Spring", "percentage", Decimal("20"))
    customer_id = repo.add_customer("Ada")

    cart = checkout.new_cart()
    cart.add_item(catalog.get_product(pid), 3)
    cart.select_customer(customer_id)
    cart.apply_promotion(catalog.active_promotions()[0])

    recorded = checkout.checkout(cart, "cash", amount_paid=Decimal("30.00"))

    assert re.fullmatch(r"S\d{6}-\d{6}", recorded.sale_number)
    assert recorded.transaction.total_amount == Decimal("25.92")
    assert recorded.transaction.change_given == Decimal("4.08")
    assert cart.is_empty()
    assert catalog.get_product(pid).current_stock == 2
    assert repo.list_promotions()[0].id == promo_id
    assert repo.list_promotions()[0].current_uses == 1
    assert repo.get_loyalty_points(customer_id) == 25


def test_scenario_e_checkout_service_revalidates_live_stock(tmp_path: Path):
    repo, catalog, checkout = _setup(tmp_path)
    pid = repo.add_product("SKU-1", "Notebook", Decimal("10.00"), 5)

    cart = checkout.new_cart()
    cart.add_item(catalog.get_product(pid), 4)
    repo.set_stock(pid, 2)

    with pytest.raises(InsufficientStockError):
        checkout.checkout(cart, "card")

    assert cart.quantity_of(pid) == 4
    assert catalog.get_product(pid).current_stock == 2


def test_backend_rejects_oversell_even_when_client_check_is_skipped(tmp_path: Path):
    repo, catalog, _ = _setup(tmp_path)
    pid = repo.add_product("SKU-1", "Notebook", Decimal("10.00"), 5)

    cart = Cart()
    cart.add_item(catalog.get_product(pid), 5)
    sale = cart.prepare_sale("card")
    repo.set_stock(pid, 1)

    with pytest.raises(InsufficientStockError):
        repo.create_sale(sale)
    assert catalog.get_product(pid).current_stock == 1


def test_backend_rejects_unknown_customer(tmp_path: Path):
    repo, catalog, checkout = _setup(tmp_path)
    pid = repo.add_product("SKU-1", "Notebook", Decimal("10.00"), 5)
    cart = checkout.new_cart()
    cart.add_item(catalog.get_product(pid))
    cart.select_customer(404)

    with pytest.raises(NotFoundError):
        checkout.checkout(cart, "card")
    assert catalog.get_product(pid).current_stock == 5
    assert not cart.is_empty()


class FailingRepo(SqliteRepository):
    def create_sale(self, sale, actor_user_id=None):
        raise RuntimeError("boom")


def test_cart_is_kept_when_persistence_fails(tmp_path: Path):
    repo = FailingRepo(tmp_path / "failing.db")
    repo.init_db()
    pid = repo.add_product("SKU-1", "Notebook", Decimal("10.00"), 5)
    catalog = CatalogService(repo)
    checkout = CheckoutService(repo, catalog, SettingsService(repo))

    cart = checkout.new_cart()
    cart.add_item(catalog.get_product(pid), 2)

    with pytest.raises(RuntimeError):
        checkout.checkout(cart, "card")

    assert cart.quantity_of(pid) == 2
    assert catalog.get_product(pid).current_stock == 5


def test_stored_figures_add_up_after_rounding():
    cart = Cart()
    cart.add_item(make_product(price="0.20", stock=5))
    cart.apply_promotion(make_promotion(type="percentage", value="12.5"))

    sale = cart.prepare_sale("card")

    assert sale.discount_amount == Decimal("0.03")
    assert sale.total_amount == Decimal("0.17")
    assert sale.subtotal - sale.discount_amount + sale.tax_amount == sale.total_amount


def test_rounded_tax_is_taken_on_rounded_net():
    cart = Cart(tax_rate=Decimal("0.075"))
    cart.add_item(make_product(price="3.33", stock=5), 3)
    cart.apply_promotion(make_promotion(type="percentage", value="7.5"))

    sale = cart.prepare_sale("card")

    assert sale.subtotal == Decimal("9.99")
    assert sale.discount_amount == Decimal("0.75")
    assert sale.tax_amount == Decimal("0.69")
    assert sale.total_amount == Decimal("9.93")
    assert sale.subtotal - sale.discount_amount + sale.tax_amount == sale.total_amount


def test_exact_cash_payment_gives_no_change():
    cart = _scenario_b_cart()

    sale = cart.checkout("cash", amount_paid=Decimal("25.92"))

    assert sale.change_given == 0
    assert sale.notes == "Amount Paid: 25.92"


def test_cash_without_amount_paid_is_insufficient():
    cart = _scenario_b_cart()

    with pytest.raises(InsufficientPaymentError) as exc:
        cart.checkout("cash")

    assert exc.value.shortfall == Decimal("25.92")
    assert not cart.is_empty()


def test_checkout_keeps_cashier_notes():
    cart = _scenario_b_cart()
    sale = cart.checkout("card", notes="gift wrap")
    assert sale.notes == "gift wrap"


class StockOutageCatalog(CatalogService):
    def stock_snapshot(self, product_ids):
        raise ApiError("backend down", 503)


def test_stock_fetch_failure_is_logged_and_keeps_cart(tmp_path: Path, caplog):
    repo, _, _ = _setup(tmp_path)
    pid = repo.add_product("SKU-1", "Notebook", Decimal("10.00"), 5)
    catalog = StockOutageCatalog(repo)
    checkout = CheckoutService(repo, catalog, SettingsService(repo))
    cart = checkout.new_cart()
    cart.add_item(catalog.get_product(pid), 2)

    with caplog.at_level(logging.WARNING, logger="retailpos.sales"):
        with pytest.raises(ApiError):
            checkout.checkout(cart, "card")

    assert "checkout_rejected reason=ApiError" in caplog.text
    assert cart.quantity_of(pid) == 2
