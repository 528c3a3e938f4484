# backend/services/orders.py
"""
Order engine.

`create_order_from_cart` turns a user's cart into an order in one unit of
work: either the order, its items, the stock decrements and the emptied cart
are all committed, or nothing is. The rest of the module is the status
lifecycle (with stock restoration on cancel) and read helpers.
"""
import logging
import random
import time
from datetime import datetime, timezone, date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from config import settings
from database import transaction
from models.order import Order, OrderItem, OrderStatus, PaymentStatus, PaymentMethod
from models.product import Product
from services import cart as cart_service
from services import catalog
from services import errors
from services.cart import StockShortage

logger = logging.getLogger(__name__)

# Allowed status changes; everything else is rejected
TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

STATUS_LABELS = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.PREPARING: "Preparing",
    OrderStatus.OUT_FOR_DELIVERY: "Out for delivery",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}


def _now():
    return datetime.now(timezone.utc)


def status_display(status) -> str:
    return STATUS_LABELS.get(OrderStatus(status), str(status))


def can_transition(current, new) -> bool:
    return OrderStatus(new) in TRANSITIONS[OrderStatus(current)]


def generate_order_number(today: Optional[date] = None) -> str:
    today = today or _now().date()
    return f"ORD-{today:%Y%m%d}-{random.randint(0, 9999):04d}"


def _delivery_fields(delivery) -> dict:
    if delivery is None:
        return {}
    if hasattr(delivery, "model_dump"):
        delivery = delivery.model_dump()
    return {
        "delivery_address": delivery.get("delivery_address"),
        "delivery_phone": delivery.get("delivery_phone"),
        "notes": delivery.get("notes"),
        "payment_method": PaymentMethod(delivery.get("payment_method") or PaymentMethod.CASH),
    }


def _order_number_taken(db: Session, number: str) -> bool:
    return db.query(Order.id).filter(Order.order_number == number).first() is not None


def _is_order_number_collision(exc: IntegrityError) -> bool:
    # SQLite names the column, PostgreSQL the index and key; both mention it
    return "order_number" in str(exc.orig)


def _insert_order(db: Session, user_id: int, total: Decimal, delivery: dict) -> Order:
    """
    Insert the order row under a fresh order number. Each attempt runs in a
    SAVEPOINT so a duplicate number only rolls back the attempt itself.
    """
    max_attempts = settings.ORDER_NUMBER_MAX_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        number = generate_order_number()
        if _order_number_taken(db, number):
            logger.info("Order number %s already taken (attempt %s/%s)", number, attempt, max_attempts)
            continue

        order = Order(
            user_id=user_id,
            order_number=number,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            total_amount=total,
            **delivery,
        )
        try:
            with db.begin_nested():
                db.add(order)
                db.flush()
            return order
        except IntegrityError as exc:
            if not _is_order_number_collision(exc):
                raise
            logger.warning("Order number collision on %s (attempt %s/%s)", number, attempt, max_attempts)
            time.sleep(settings.ORDER_NUMBER_RETRY_BACKOFF * attempt)

    logger.error("Could not allocate an order number after %s attempts", max_attempts)
    raise errors.PersistenceError("Could not generate a unique order number, please try again")


def create_order_from_cart(db: Session, user_id: int, delivery=None) -> Order:
    """
    Convert the user's cart into a pending order.

    Raises EmptyCart, InsufficientStock (with the short items) or
    PersistenceError. On any failure the database is left untouched.
    """
    delivery = _delivery_fields(delivery)

    with transaction(db):
        rows = cart_service.snapshot(db, user_id)
        if not rows:
            raise errors.EmptyCart()

        # Lock in id order so concurrent checkouts cannot deadlock each other
        product_ids = sorted({row.product_id for row in rows})
        (
            db.query(Product)
            .filter(Product.id.in_(product_ids))
            .order_by(Product.id)
            .with_for_update()
            .populate_existing()
            .all()
        )

        shortages = cart_service.stock_shortages(rows)
        if shortages:
            raise errors.InsufficientStock(shortages)

        total = cart_service.cart_total(rows)
        if total <= 0:
            raise errors.ValidationError("Order total must be greater than 0")

        order = _insert_order(db, user_id, total, delivery)

        for row in rows:
            unit_price = row.unit_price.quantize(cart_service.CENT)
            db.add(OrderItem(
                order_id=order.id,
                product_id=row.product_id,
                variant_id=row.variant_id,
                quantity=row.quantity,
                unit_price=unit_price,
                total_price=unit_price * row.quantity,
            ))

        for product_id, quantity in cart_service.requested_per_product(rows).items():
            if not catalog.decrement_stock(db, product_id, quantity):
                product = db.get(Product, product_id)
                raise errors.InsufficientStock([StockShortage(
                    product_id=product_id,
                    product=product.name,
                    requested=quantity,
                    available=product.stock_quantity,
                )])
            catalog.record_movement(
                db, product_id=product_id, qty=-quantity, type="OUT",
                reason=f"Order {order.order_number}", user_id=user_id, order_id=order.id,
            )

        cart_service.delete_rows(db, user_id)

    logger.info("Order %s created for user_id=%s (total=%s)", order.order_number, user_id, total)
    return get_order(db, order.id)


# =========================
# STATUS LIFECYCLE
# =========================
def _lock_order(db: Session, order_id: int, user_id: Optional[int] = None) -> Order:
    query = db.query(Order).filter(Order.id == order_id)
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    order = query.with_for_update().populate_existing().first()
    if order is None:
        raise errors.NotFound("Order not found")
    return order


def _transition(db: Session, order_id: int, new_status: OrderStatus) -> Order:
    with transaction(db):
        order = _lock_order(db, order_id)
        current = OrderStatus(order.status)
        if not can_transition(current, new_status):
            raise errors.InvalidTransition(
                f"Cannot change order status from {current.value} to {new_status.value}"
            )
        order.status = new_status
        if new_status == OrderStatus.CONFIRMED:
            order.confirmed_at = _now()
        elif new_status == OrderStatus.DELIVERED:
            order.delivered_at = _now()
            order.payment_status = PaymentStatus.PAID
    logger.info("Order %s: %s -> %s", order.order_number, current.value, new_status.value)
    return get_order(db, order_id)


def confirm(db: Session, order_id: int) -> Order:
    return _transition(db, order_id, OrderStatus.CONFIRMED)


def mark_preparing(db: Session, order_id: int) -> Order:
    return _transition(db, order_id, OrderStatus.PREPARING)


def mark_out_for_delivery(db: Session, order_id: int) -> Order:
    return _transition(db, order_id, OrderStatus.OUT_FOR_DELIVERY)


def mark_delivered(db: Session, order_id: int) -> Order:
    # Cash on delivery: handing the order over settles the payment
    return _transition(db, order_id, OrderStatus.DELIVERED)


def update_status(db: Session, order_id: int, new_status) -> Order:
    try:
        new_status = OrderStatus(new_status)
    except ValueError:
        raise errors.ValidationError(f"Unknown order status: {new_status}")
    if new_status == OrderStatus.CANCELLED:
        return cancel(db, order_id)
    return _transition(db, order_id, new_status)


def cancel(db: Session, order_id: int, user_id: Optional[int] = None) -> Order:
    """
    Cancel a pending or confirmed order and put its quantities back in stock.
    With `user_id` only that customer's own order can be cancelled.
    """
    with transaction(db):
        order = _lock_order(db, order_id, user_id)
        if not order.is_cancellable:
            raise errors.CannotCancel(
                f"Order {order.order_number} is {status_display(order.status).lower()} and cannot be cancelled"
            )

        restored: Dict[int, int] = {}
        for item in order.items:
            restored[item.product_id] = restored.get(item.product_id, 0) + item.quantity
        for product_id, quantity in restored.items():
            catalog.increment_stock(db, product_id, quantity)
            catalog.record_movement(
                db, product_id=product_id, qty=quantity, type="IN",
                reason=f"Cancelled order {order.order_number}", user_id=user_id, order_id=order.id,
            )

        order.status = OrderStatus.CANCELLED
    logger.info("Order %s cancelled, stock restored for %s product(s)", order.order_number, len(restored))
    return get_order(db, order_id)


# =========================
# READS
# =========================
def _with_items(query):
    return query.options(
        selectinload(Order.items).selectinload(OrderItem.product),
        selectinload(Order.items).selectinload(OrderItem.variant),
        selectinload(Order.user),
    )


def get_order(db: Session, order_id: int) -> Order:
    order = _with_items(db.query(Order)).filter(Order.id == order_id).populate_existing().first()
    if order is None:
        raise errors.NotFound("Order not found")
    return order


def get_user_order(db: Session, user_id: int, order_id: int) -> Order:
    order = (
        _with_items(db.query(Order))
        .filter(Order.id == order_id, Order.user_id == user_id)
        .first()
    )
    if order is None:
        raise errors.NotFound("Order not found")
    return order


def get_order_by_number(db: Session, order_number: str) -> Optional[Order]:
    return _with_items(db.query(Order)).filter(Order.order_number == order_number).first()


def list_user_orders(db: Session, user_id: int, *, offset: int = 0, limit: Optional[int] = None) -> List[Order]:
    query = (
        _with_items(db.query(Order))
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def list_orders(db: Session, status=None, *, offset: int = 0, limit: Optional[int] = None) -> List[Order]:
    query = _with_items(db.query(Order))
    if status is not None:
        query = query.filter(Order.status == OrderStatus(status))
    query = query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def list_orders_by_date_range(db: Session, start: datetime, end: datetime, status=None) -> List[Order]:
    query = _with_items(db.query(Order)).filter(Order.created_at >= start, Order.created_at <= end)
    if status is not None:
        query = query.filter(Order.status == OrderStatus(status))
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def recent_orders(db: Session, limit: int = 10) -> List[Order]:
    return list_orders(db, limit=limit)


def count_orders(db: Session, status=None, user_id: Optional[int] = None) -> int:
    query = db.query(func.count(Order.id))
    if status is not None:
        query = query.filter(Order.status == OrderStatus(status))
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    return query.scalar() or 0


def count_orders_by_status(db: Session) -> Dict[str, int]:
    counts = {status.value: 0 for status in OrderStatus}
    rows = db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    for status, count in rows:
        counts[OrderStatus(status).value] = count
    return counts


def order_stats(db: Session) -> dict:
    by_status = count_orders_by_status(db)
    return {"total": sum(by_status.values()), "by_status": by_status}
