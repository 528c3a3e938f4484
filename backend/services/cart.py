# backend/services/cart.py
"""
Per-user shopping cart.

`snapshot`, `stock_shortages` and `cart_total` are shared with the order
engine, so the cart view and the checkout commit apply the same rules.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import transaction
from models.cart import CartItem
from models.product import Product, ProductVariant
from services import errors

logger = logging.getLogger(__name__)

MAX_QUANTITY = 100
CENT = Decimal("0.01")


@dataclass(frozen=True)
class StockShortage:
    product_id: int
    product: str
    requested: int
    available: int


def _check_quantity(quantity: int) -> None:
    if quantity is None or quantity <= 0:
        raise errors.ValidationError("Quantity must be greater than 0")
    if quantity > MAX_QUANTITY:
        raise errors.ValidationError(f"Quantity must not exceed {MAX_QUANTITY}")


def _find_row(db: Session, user_id: int, product_id: int, variant_id: Optional[int]) -> Optional[CartItem]:
    query = db.query(CartItem).filter(CartItem.user_id == user_id, CartItem.product_id == product_id)
    if variant_id is None:
        query = query.filter(CartItem.variant_id.is_(None))
    else:
        query = query.filter(CartItem.variant_id == variant_id)
    return query.first()


def _get_own_row(db: Session, user_id: int, cart_item_id: int) -> CartItem:
    row = db.query(CartItem).filter(CartItem.id == cart_item_id, CartItem.user_id == user_id).first()
    if row is None:
        raise errors.NotFound("Cart item not found")
    return row


def add_item(db: Session, user_id: int, product_id: int, variant_id: Optional[int] = None,
             quantity: int = 1) -> CartItem:
    """Add a product (and optional variant) or increase the quantity of an existing line."""
    _check_quantity(quantity)

    product = db.get(Product, product_id)
    if product is None:
        raise errors.NotFound("Product not found")
    if not product.is_available or product.stock_quantity <= 0:
        raise errors.ValidationError(f"{product.name} is currently unavailable")

    if variant_id is not None:
        variant = db.get(ProductVariant, variant_id)
        if variant is None:
            raise errors.NotFound("Variant not found")
        if variant.product_id != product.id:
            raise errors.ValidationError("Variant does not belong to this product")

    for attempt in (1, 2):
        try:
            with transaction(db):
                row = _find_row(db, user_id, product.id, variant_id)
                if row:
                    new_quantity = row.quantity + quantity
                    if new_quantity > MAX_QUANTITY:
                        raise errors.ValidationError(
                            f"Quantity must not exceed {MAX_QUANTITY} (already in cart: {row.quantity})"
                        )
                    row.quantity = new_quantity
                else:
                    row = CartItem(user_id=user_id, product_id=product.id, variant_id=variant_id, quantity=quantity)
                    db.add(row)
                    db.flush()
            break
        except errors.PersistenceError as exc:
            # A parallel request inserted the same line first; retry once as an increment
            if attempt == 2 or not isinstance(exc.__cause__, IntegrityError):
                raise
            logger.info("Cart line for user %s, product %s created concurrently, retrying", user_id, product.id)

    db.refresh(row)
    return row


def update_quantity(db: Session, user_id: int, cart_item_id: int, quantity: int) -> CartItem:
    _check_quantity(quantity)
    row = _get_own_row(db, user_id, cart_item_id)
    with transaction(db):
        row.quantity = quantity
    db.refresh(row)
    return row


def remove_item(db: Session, user_id: int, cart_item_id: int) -> None:
    row = _get_own_row(db, user_id, cart_item_id)
    with transaction(db):
        db.delete(row)


def clear(db: Session, user_id: int) -> int:
    with transaction(db):
        deleted = db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
    return deleted


def delete_rows(db: Session, user_id: int) -> int:
    """Delete the user's cart rows without committing (used inside checkout)."""
    return db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)


def snapshot(db: Session, user_id: int) -> List[CartItem]:
    """Cart rows, newest first, re-read from the database with product and variant."""
    return (
        db.query(CartItem)
        .options(joinedload(CartItem.product), joinedload(CartItem.variant))
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.created_at.desc(), CartItem.id.desc())
        .populate_existing()
        .all()
    )


def requested_per_product(rows: Iterable[CartItem]) -> Dict[int, int]:
    totals: Dict[int, int] = OrderedDict()
    for row in rows:
        totals[row.product_id] = totals.get(row.product_id, 0) + row.quantity
    return totals


def stock_shortages(rows: Iterable[CartItem]) -> List[StockShortage]:
    """
    Products whose summed cart quantity exceeds current stock.
    Variants of one product share its stock, so quantities are added up per product.
    """
    rows = list(rows)
    products = {row.product_id: row.product for row in rows}
    shortages = []
    for product_id, requested in requested_per_product(rows).items():
        product = products[product_id]
        if requested > product.stock_quantity:
            shortages.append(StockShortage(
                product_id=product_id,
                product=product.name,
                requested=requested,
                available=product.stock_quantity,
            ))
    return shortages


def cart_total(rows: Iterable[CartItem]) -> Decimal:
    total = sum((row.unit_price * row.quantity for row in rows), Decimal("0.00"))
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_stock(db: Session, user_id: int) -> List[StockShortage]:
    return stock_shortages(snapshot(db, user_id))


def total(db: Session, user_id: int) -> Decimal:
    return cart_total(snapshot(db, user_id))


def unavailable_products(rows: Iterable[CartItem]) -> List[str]:
    return [row.product.name for row in rows if not row.product.is_available]


def count_items(db: Session, user_id: int) -> int:
    return db.query(func.count(CartItem.id)).filter(CartItem.user_id == user_id).scalar() or 0


def count_quantity(db: Session, user_id: int) -> int:
    return db.query(func.coalesce(func.sum(CartItem.quantity), 0)).filter(CartItem.user_id == user_id).scalar()


def is_empty(db: Session, user_id: int) -> bool:
    return count_items(db, user_id) == 0
