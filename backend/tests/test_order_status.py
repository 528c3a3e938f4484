import pytest
from sqlalchemy.exc import OperationalError

from conftest import DELIVERY, make_user
from models.order import OrderStatus, PaymentStatus
from models.product import Product
from models.stock import StockMovement
from services import cart as cart_service
from services import errors
from services import orders as order_service


@pytest.fixture
def order(db, shop):
    cart_service.add_item(db, shop["user"].id, shop["juice"].id, shop["large"].id, quantity=2)
    return order_service.create_order_from_cart(db, shop["user"].id, DELIVERY)


def _stock(db, product_id):
    return db.query(Product.stock_quantity).filter(Product.id == product_id).scalar()


def test_full_lifecycle(db, order):
    confirmed = order_service.confirm(db, order.id)
    assert confirmed.status == OrderStatus.CONFIRMED
    assert confirmed.confirmed_at is not None

    assert order_service.mark_preparing(db, order.id).status == OrderStatus.PREPARING
    assert order_service.mark_out_for_delivery(db, order.id).status == OrderStatus.OUT_FOR_DELIVERY

    delivered = order_service.mark_delivered(db, order.id)
    assert delivered.status == OrderStatus.DELIVERED
    assert delivered.delivered_at is not None
    assert delivered.payment_status == PaymentStatus.PAID
    assert delivered.is_completed


@pytest.mark.parametrize("operation", ["mark_preparing", "mark_out_for_delivery", "mark_delivered"])
def test_skipping_steps_is_rejected(db, order, operation):
    with pytest.raises(errors.InvalidTransition):
        getattr(order_service, operation)(db, order.id)
    assert order_service.get_order(db, order.id).status == OrderStatus.PENDING


def test_cancel_restores_stock(db, shop, order):
    assert _stock(db, shop["juice"].id) == 48

    cancelled = order_service.cancel(db, order.id)

    assert cancelled.status == OrderStatus.CANCELLED
    assert _stock(db, shop["juice"].id) == 50
    restock = db.query(StockMovement).filter(StockMovement.type == "IN").one()
    assert (restock.product_id, restock.qty, restock.order_id) == (shop["juice"].id, 2, order.id)


def test_failed_cancel_commit_keeps_stock_and_status(db, shop, order, monkeypatch):
    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(errors.PersistenceError):
        order_service.cancel(db, order.id)

    monkeypatch.undo()
    assert _stock(db, shop["juice"].id) == 48
    assert order_service.get_order(db, order.id).status == OrderStatus.PENDING
    assert db.query(StockMovement).filter(StockMovement.type == "IN").count() == 0


def test_confirmed_order_can_still_be_cancelled(db, shop, order):
    order_service.confirm(db, order.id)
    order_service.cancel(db, order.id)
    assert _stock(db, shop["juice"].id) == 50


@pytest.mark.parametrize("steps", [
    ["confirm", "mark_preparing"],
    ["confirm", "mark_preparing", "mark_out_for_delivery", "mark_delivered"],
])
def test_cannot_cancel_after_preparation_started(db, shop, order, steps):
    for step in steps:
        getattr(order_service, step)(db, order.id)
    status_before = order_service.get_order(db, order.id).status

    with pytest.raises(errors.CannotCancel):
        order_service.cancel(db, order.id)

    assert order_service.get_order(db, order.id).status == status_before
    assert _stock(db, shop["juice"].id) == 48


def test_cancelling_twice_does_not_restock_twice(db, shop, order):
    order_service.cancel(db, order.id)
    with pytest.raises(errors.CannotCancel):
        order_service.cancel(db, order.id)
    assert _stock(db, shop["juice"].id) == 50


def test_customer_can_only_cancel_own_order(db, shop, order):
    stranger = make_user(db, email="stranger@snackshop.co.ke")
    with pytest.raises(errors.NotFound):
        order_service.cancel(db, order.id, user_id=stranger.id)

    cancelled = order_service.cancel(db, order.id, user_id=shop["user"].id)
    assert cancelled.status == OrderStatus.CANCELLED


def test_update_status_follows_transition_table(db, shop, order):
    assert order_service.update_status(db, order.id, "confirmed").confirmed_at is not None
    with pytest.raises(errors.InvalidTransition):
        order_service.update_status(db, order.id, OrderStatus.DELIVERED)
    with pytest.raises(errors.InvalidTransition):
        order_service.update_status(db, order.id, OrderStatus.PENDING)
    with pytest.raises(errors.ValidationError):
        order_service.update_status(db, order.id, "shipped")

    cancelled = order_service.update_status(db, order.id, "cancelled")
    assert cancelled.status == OrderStatus.CANCELLED
    assert _stock(db, shop["juice"].id) == 50


def test_unknown_order(db, shop):
    with pytest.raises(errors.NotFound):
        order_service.confirm(db, 12345)
    with pytest.raises(errors.NotFound):
        order_service.cancel(db, 12345)


def test_stats_and_status_labels(db, order):
    order_service.confirm(db, order.id)
    stats = order_service.order_stats(db)

    assert stats["total"] == 1
    assert stats["by_status"]["confirmed"] == 1
    assert stats["by_status"]["pending"] == 0
    assert order_service.status_display("out_for_delivery") == "Out for delivery"
    assert order_service.list_orders(db, status="confirmed")[0].id == order.id
    assert order_service.list_orders(db, status=OrderStatus.PENDING) == []
