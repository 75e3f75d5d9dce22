from decimal import Decimal

import pytest

from conftest import make_product, make_promotion
from retailpos.domain.cart import Cart
from retailpos.domain.errors import (
    InsufficientStockError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)


def test_scenario_a_no_promotion_with_tax():
    cart = Cart(tax_rate=Decimal("0.08"))
    cart.add_item(make_product(price="10.00", stock=5), 3)

    totals = cart.compute_totals()

    assert totals.subtotal == Decimal("30.00")
    assert totals.discount_amount == 0
    assert totals.tax_amount == Decimal("2.40")
    assert totals.total == Decimal("32.40")


def test_scenario_b_percentage_promotion():
    cart = Cart(tax_rate=Decimal("0.08"))
    cart.add_item(make_product(price="10.00", stock=5), 3)

    totals = cart.apply_promotion(make_promotion(type="percentage", value="20"))

    assert totals.discount_amount == Decimal("6.00")
    assert totals.net_after_discount == Decimal("24.00")
    assert totals.tax_amount == Decimal("1.92")
    assert totals.total == Decimal("25.92")


def test_fixed_discount_is_clamped_to_subtotal():
    cart = Cart(tax_rate=Decimal("0.08"))
    cart.add_item(make_product(price="4.00", stock=5), 1)

    totals = cart.apply_promotion(make_promotion(type="fixed", value="10"))

    assert totals.discount_amount == Decimal("4.00")
    assert totals.net_after_discount == 0
    assert totals.tax_amount == 0
    assert totals.total == 0


def test_minimum_quantity_of_promotion_is_not_enforced():
    cart = Cart()
    cart.add_item(make_product(price="10.00", stock=5), 1)

    totals = cart.apply_promotion(make_promotion(type="fixed", value="2.50", min_quantity=10))

    assert totals.discount_amount == Decimal("2.50")
    assert totals.total == Decimal("7.50")


def test_clearing_promotion_restores_totals():
    cart = Cart()
    cart.add_item(make_product(price="10.00", stock=5), 2)
    cart.apply_promotion(make_promotion(value="50"))

    totals = cart.apply_promotion(None)

    assert totals.discount_amount == 0
    assert totals.total == Decimal("20.00")


def test_subtotal_has_no_drift_after_many_add_remove_cycles():
    a = make_product(1, price="0.10", stock=1000)
    b = make_product(2, price="0.20", stock=1000)
    c = make_product(3, price="0.70", stock=1000)
    cart = Cart(tax_rate=Decimal("0.075"))

    for _ in range(50):
        cart.add_item(a)
        cart.add_item(b, 2)
        cart.add_item(c)
        cart.remove_item(c.id)

    totals = cart.compute_totals()
    assert totals.subtotal == Decimal("0.10") * 50 + Decimal("0.20") * 100
    assert totals.subtotal == sum(line.line_subtotal for line in cart.lines)
    assert totals.net_after_discount == totals.subtotal - totals.discount_amount
    assert totals.total == totals.net_after_discount + totals.tax_amount


def test_adding_exactly_current_stock_succeeds_and_one_more_fails():
    product = make_product(stock=3, name="Widget")
    cart = Cart()
    cart.add_item(product, 3)

    with pytest.raises(InsufficientStockError, match="Only 3 units of Widget available, 4 requested"):
        cart.add_item(product)

    assert cart.quantity_of(product.id) == 3


def test_adding_an_out_of_stock_product_fails():
    cart = Cart()
    with pytest.raises(OutOfStockError):
        cart.add_item(make_product(stock=0))
    assert cart.is_empty()


def test_adding_existing_product_increments_line():
    product = make_product(stock=10)
    cart = Cart()
    cart.add_item(product)
    cart.add_item(product, 2)

    assert len(cart.lines) == 1
    assert cart.quantity_of(product.id) == 3


def test_add_item_rejects_non_positive_quantity():
    with pytest.raises(ValidationError):
        Cart().add_item(make_product(), 0)


def test_set_quantity_updates_removes_and_validates():
    product = make_product(stock=4)
    cart = Cart()
    cart.add_item(product)

    cart.set_quantity(product.id, 4)
    assert cart.quantity_of(product.id) == 4

    with pytest.raises(InsufficientStockError):
        cart.set_quantity(product.id, 5)
    assert cart.quantity_of(product.id) == 4

    cart.set_quantity(product.id, 0)
    assert cart.is_empty()


def test_set_quantity_for_product_not_in_cart_fails():
    with pytest.raises(NotFoundError):
        Cart().set_quantity(99, 2)


def test_remove_item_absent_is_noop():
    cart = Cart(tax_rate=Decimal("0.08"))
    cart.add_item(make_product(price="10.00"), 2)
    before = cart.compute_totals()

    cart.remove_item(12345)

    assert cart.compute_totals() == before


def test_clear_resets_lines_customer_and_promotion():
    cart = Cart()
    cart.add_item(make_product())
    cart.select_customer(7)
    cart.apply_promotion(make_promotion())

    cart.clear()

    assert cart.is_empty()
    assert cart.customer_id is None
    assert cart.promotion is None


def test_tax_rate_must_be_a_fraction():
    with pytest.raises(ValidationError):
        Cart(tax_rate=Decimal("8"))
