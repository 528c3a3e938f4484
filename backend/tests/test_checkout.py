from decimal import Decimal

import pytest

from conftest import DELIVERY, make_product
from models.order import Order
from models.product import Product
from services import cart as cart_service
from services import checkout
from services import errors


def test_checkout_with_valid_otp_places_order(db, shop, gate, notifier):
    user, juice, large = shop["user"], shop["juice"], shop["large"]
    cart_service.add_item(db, user.id, juice.id, large.id, quantity=2)

    expires_in = checkout.start_checkout(db, user, DELIVERY, gate, notifier)
    assert expires_in == 300
    code = notifier.codes[user.id]

    order = checkout.complete_checkout(db, user, code, gate, notifier)

    assert order.total_amount == Decimal("440.00")
    assert order.delivery_phone == DELIVERY["delivery_phone"]
    assert notifier.confirmed == [order.order_number]
    assert db.query(Product.stock_quantity).filter(Product.id == juice.id).scalar() == 48
    assert cart_service.is_empty(db, user.id)


def test_otp_cannot_be_replayed(db, shop, gate, notifier):
    user = shop["user"]
    cart_service.add_item(db, user.id, shop["juice"].id)
    checkout.start_checkout(db, user, DELIVERY, gate, notifier)
    code = notifier.codes[user.id]
    checkout.complete_checkout(db, user, code, gate, notifier)

    cart_service.add_item(db, user.id, shop["juice"].id)
    with pytest.raises(errors.OtpExpired):
        checkout.complete_checkout(db, user, code, gate, notifier)
    assert db.query(Order).count() == 1


def test_wrong_code_then_right_code(db, shop, gate, notifier):
    user = shop["user"]
    cart_service.add_item(db, user.id, shop["juice"].id)
    checkout.start_checkout(db, user, DELIVERY, gate, notifier)

    with pytest.raises(errors.OtpInvalid):
        checkout.complete_checkout(db, user, "nope00", gate, notifier)
    assert db.query(Order).count() == 0

    order = checkout.complete_checkout(db, user, notifier.codes[user.id], gate, notifier)
    assert order.id is not None


def test_expired_code_drops_pending_checkout(db, shop, gate, notifier, clock):
    user = shop["user"]
    cart_service.add_item(db, user.id, shop["juice"].id)
    checkout.start_checkout(db, user, DELIVERY, gate, notifier)
    clock.advance(301)

    with pytest.raises(errors.OtpExpired):
        checkout.complete_checkout(db, user, notifier.codes[user.id], gate, notifier)
    assert checkout.pending_key(user.id) not in gate.cache
    assert db.query(Order).count() == 0


def test_start_requires_non_empty_cart(db, shop, gate, notifier):
    with pytest.raises(errors.EmptyCart):
        checkout.start_checkout(db, shop["user"], DELIVERY, gate, notifier)
    assert notifier.codes == {}


def test_start_rejects_short_stock(db, shop, gate, notifier):
    user = shop["user"]
    chips = make_product(db, shop["category"], name="Chips", stock=1)
    cart_service.add_item(db, user.id, chips.id, quantity=3)

    with pytest.raises(errors.InsufficientStock):
        checkout.start_checkout(db, user, DELIVERY, gate, notifier)
    assert not gate.has_pending(user.id)


def test_stock_sold_out_after_otp_was_sent(db, shop, gate, notifier):
    user, juice = shop["user"], shop["juice"]
    cart_service.add_item(db, user.id, juice.id, quantity=2)
    checkout.start_checkout(db, user, DELIVERY, gate, notifier)

    juice.stock_quantity = 1
    db.commit()

    with pytest.raises(errors.InsufficientStock):
        checkout.complete_checkout(db, user, notifier.codes[user.id], gate, notifier)
    assert db.query(Order).count() == 0
    assert cart_service.count_quantity(db, user.id) == 2
