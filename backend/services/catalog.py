# backend/services/catalog.py
"""
Catalog store: categories, products, variants and ingredients.

Besides the admin CRUD it owns the product stock counter. The order engine
uses `decrement_stock` / `increment_stock` inside its own unit of work; the
public `reduce_stock` / `increase_stock` / `adjust_stock` run their own.
"""
import logging
import re
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_, update, func
from sqlalchemy.orm import Session, selectinload

from database import transaction
from models.cart import CartItem
from models.category import Category
from models.order import OrderItem
from models.product import Product, ProductVariant, ProductIngredient
from models.stock import StockMovement
from services import errors

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    "category_id", "name", "description", "cost_price", "selling_price",
    "stock_quantity", "is_available", "image_url",
)


def slugify(name: str) -> str:
    slug = re.sub(r"[^\w-]+", "-", name.strip().lower())
    return slug.strip("-")


def _with_details(query):
    return query.options(
        selectinload(Product.category),
        selectinload(Product.variants),
        selectinload(Product.ingredients),
    )


# =========================
# CATEGORIES
# =========================
def list_categories(db: Session) -> List[Category]:
    return db.query(Category).order_by(Category.name.asc()).all()


def get_category(db: Session, category_id: int) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise errors.NotFound("Category not found")
    return category


def get_category_by_slug(db: Session, slug: str) -> Optional[Category]:
    return db.query(Category).filter(Category.slug == slug).first()


def _ensure_category_name_free(db: Session, name: str, slug: str, exclude_id: Optional[int] = None):
    query = db.query(Category.id).filter(or_(func.lower(Category.name) == name.lower(), Category.slug == slug))
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise errors.ValidationError("Category name has already been taken")


def create_category(db: Session, *, name: str, description: Optional[str] = None) -> Category:
    name = name.strip()
    slug = slugify(name)
    _ensure_category_name_free(db, name, slug)
    with transaction(db):
        category = Category(name=name, description=description, slug=slug)
        db.add(category)
    db.refresh(category)
    return category


def update_category(db: Session, category_id: int, **changes) -> Category:
    category = get_category(db, category_id)
    name = changes.get("name")
    with transaction(db):
        if name:
            name = name.strip()
            slug = slugify(name)
            _ensure_category_name_free(db, name, slug, exclude_id=category.id)
            category.name, category.slug = name, slug
        if "description" in changes:
            category.description = changes["description"]
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = get_category(db, category_id)
    if count_products_by_category(db, category.id):
        raise errors.ReferenceConflict("Category still has products and cannot be deleted")
    with transaction(db):
        db.delete(category)


# =========================
# PRODUCTS
# =========================
def list_products(db: Session) -> List[Product]:
    return _with_details(db.query(Product)).order_by(Product.created_at.desc(), Product.id.desc()).all()


def list_available_products(db: Session) -> List[Product]:
    return (
        _with_details(db.query(Product))
        .filter(Product.is_available.is_(True), Product.stock_quantity > 0)
        .order_by(Product.name.asc())
        .all()
    )


def list_products_by_category(db: Session, category_id: int) -> List[Product]:
    return (
        _with_details(db.query(Product))
        .filter(Product.category_id == category_id, Product.is_available.is_(True))
        .order_by(Product.name.asc())
        .all()
    )


def list_products_by_category_slug(db: Session, slug: str) -> List[Product]:
    return (
        _with_details(db.query(Product))
        .join(Category, Product.category_id == Category.id)
        .filter(Category.slug == slug, Product.is_available.is_(True))
        .order_by(Product.name.asc())
        .all()
    )


def search_products(db: Session, term: str) -> List[Product]:
    like = f"%{term}%"
    return (
        _with_details(db.query(Product))
        .filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
        .filter(Product.is_available.is_(True))
        .order_by(Product.name.asc())
        .all()
    )


def get_product(db: Session, product_id: int) -> Product:
    product = _with_details(db.query(Product)).filter(Product.id == product_id).first()
    if product is None:
        raise errors.NotFound("Product not found")
    return product


def get_product_by_slug(db: Session, slug: str) -> Optional[Product]:
    return _with_details(db.query(Product)).filter(Product.slug == slug).first()


def _validate_product(db: Session, data: dict, exclude_id: Optional[int] = None) -> None:
    if data.get("category_id") is None or db.get(Category, data["category_id"]) is None:
        raise errors.ValidationError("Category does not exist")
    cost, selling = data.get("cost_price"), data.get("selling_price")
    if cost is None or selling is None:
        raise errors.ValidationError("cost_price and selling_price are required")
    if cost < 0 or selling < 0:
        raise errors.ValidationError("Prices must not be negative")
    if selling < cost:
        raise errors.ValidationError("selling_price must be greater than or equal to cost price")
    if (data.get("stock_quantity") or 0) < 0:
        raise errors.ValidationError("stock_quantity must not be negative")
    slug_taken = db.query(Product.id).filter(Product.slug == data["slug"])
    if exclude_id is not None:
        slug_taken = slug_taken.filter(Product.id != exclude_id)
    if slug_taken.first():
        raise errors.ValidationError("A product with this name already exists")


def create_product(db: Session, *, variants: Optional[list] = None,
                   ingredients: Optional[list] = None, **fields) -> Product:
    """Create a product, optionally with its variants and ingredients, in one transaction."""
    data = {k: fields.get(k) for k in PRODUCT_FIELDS if k in fields}
    data["name"] = (data.get("name") or "").strip()
    if len(data["name"]) < 2:
        raise errors.ValidationError("Product name must have at least 2 characters")
    data["stock_quantity"] = data.get("stock_quantity") or 0
    if data.get("is_available") is None:
        data["is_available"] = True
    data["slug"] = slugify(data["name"])
    _validate_product(db, data)

    with transaction(db):
        product = Product(**data)
        for v in variants or []:
            product.variants.append(_build_variant(v))
        for i in ingredients or []:
            product.ingredients.append(_build_ingredient(i))
        db.add(product)
        if data["stock_quantity"]:
            db.flush()
            record_movement(db, product_id=product.id, qty=data["stock_quantity"], type="IN", reason="Initial stock")
    return get_product(db, product.id)


def update_product(db: Session, product_id: int, **changes) -> Product:
    product = get_product(db, product_id)
    data = {k: getattr(product, k) for k in PRODUCT_FIELDS}
    data.update({k: v for k, v in changes.items() if k in PRODUCT_FIELDS and v is not None})
    data["name"] = data["name"].strip()
    data["slug"] = slugify(data["name"])
    _validate_product(db, data, exclude_id=product.id)

    delta = data["stock_quantity"] - product.stock_quantity
    with transaction(db):
        for key, value in data.items():
            setattr(product, key, value)
        if delta:
            record_movement(db, product_id=product.id, qty=delta, type="ADJUSTMENT", reason="Product edited")
    return get_product(db, product.id)


def delete_product(db: Session, product_id: int) -> None:
    product = get_product(db, product_id)
    in_orders = db.query(func.count(OrderItem.id)).filter(OrderItem.product_id == product.id).scalar()
    if in_orders:
        raise errors.ReferenceConflict("Product appears in orders and cannot be deleted")
    with transaction(db):
        db.query(CartItem).filter(CartItem.product_id == product.id).delete(synchronize_session=False)
        db.query(StockMovement).filter(StockMovement.product_id == product.id).delete(synchronize_session=False)
        db.delete(product)


def count_products(db: Session) -> int:
    return db.query(func.count(Product.id)).scalar() or 0


def count_products_by_category(db: Session, category_id: int) -> int:
    return db.query(func.count(Product.id)).filter(Product.category_id == category_id).scalar() or 0


def low_stock_products(db: Session, threshold: int = 10) -> List[Product]:
    return (
        db.query(Product)
        .filter(Product.stock_quantity > 0, Product.stock_quantity < threshold)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )


def out_of_stock_products(db: Session) -> List[Product]:
    return db.query(Product).filter(Product.stock_quantity == 0).order_by(Product.name.asc()).all()


# =========================
# STOCK
# =========================
def decrement_stock(db: Session, product_id: int, quantity: int) -> bool:
    """
    Conditional decrement: succeeds only while stock_quantity >= quantity.
    Does not commit. Returns False when the row did not have enough stock.
    """
    result = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock_quantity >= quantity)
        .values(stock_quantity=Product.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    _expire_stock(db, product_id)
    return result.rowcount == 1


def increment_stock(db: Session, product_id: int, quantity: int) -> None:
    db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock_quantity=Product.stock_quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    _expire_stock(db, product_id)


def _expire_stock(db: Session, product_id: int) -> None:
    # Bulk UPDATE bypasses the identity map; force a reload on next access
    product = db.identity_map.get(db.identity_key(Product, product_id))
    if product is not None:
        db.expire(product, ["stock_quantity"])


def record_movement(db: Session, *, product_id: int, qty: int, type: str, reason: Optional[str] = None,
                    user_id: Optional[int] = None, order_id: Optional[int] = None) -> StockMovement:
    movement = StockMovement(product_id=product_id, qty=qty, type=type, reason=reason,
                             user_id=user_id, order_id=order_id)
    db.add(movement)
    return movement


def reduce_stock(db: Session, product_id: int, quantity: int, *, user_id: Optional[int] = None,
                 reason: Optional[str] = None) -> Product:
    if quantity <= 0:
        raise errors.ValidationError("Quantity must be greater than 0")
    product = get_product(db, product_id)
    with transaction(db):
        if not decrement_stock(db, product.id, quantity):
            db.refresh(product)
            raise errors.ValidationError(
                f"Insufficient stock for {product.name} (requested: {quantity}, available: {product.stock_quantity})"
            )
        record_movement(db, product_id=product.id, qty=-quantity, type="OUT", reason=reason, user_id=user_id)
    db.refresh(product)
    return product


def increase_stock(db: Session, product_id: int, quantity: int, *, user_id: Optional[int] = None,
                   reason: Optional[str] = None) -> Product:
    if quantity <= 0:
        raise errors.ValidationError("Quantity must be greater than 0")
    product = get_product(db, product_id)
    with transaction(db):
        increment_stock(db, product.id, quantity)
        record_movement(db, product_id=product.id, qty=quantity, type="IN", reason=reason, user_id=user_id)
    db.refresh(product)
    return product


def adjust_stock(db: Session, product_id: int, delta: int, *, user_id: Optional[int] = None,
                 reason: Optional[str] = None) -> StockMovement:
    """Manual correction by an admin; stock never goes below zero."""
    if delta == 0:
        raise errors.ValidationError("Quantity change must not be 0")
    product = get_product(db, product_id)
    with transaction(db):
        if delta < 0:
            if not decrement_stock(db, product.id, -delta):
                raise errors.ValidationError("Stock quantity cannot become negative")
        else:
            increment_stock(db, product.id, delta)
        movement = record_movement(db, product_id=product.id, qty=delta, type="ADJUSTMENT",
                                   reason=reason, user_id=user_id)
    db.refresh(movement)
    return movement


def update_stock(db: Session, product_id: int, quantity: int, *, user_id: Optional[int] = None) -> Product:
    """Set the absolute stock level (recorded as an adjustment of the difference)."""
    if quantity < 0:
        raise errors.ValidationError("stock_quantity must not be negative")
    product = get_product(db, product_id)
    delta = quantity - product.stock_quantity
    if delta:
        adjust_stock(db, product.id, delta, user_id=user_id, reason="Stock level set")
    db.refresh(product)
    return product


# =========================
# VARIANTS / INGREDIENTS
# =========================
def _build_variant(data: dict) -> ProductVariant:
    name = (data.get("name") or "").strip()
    value = (data.get("value") or "").strip()
    adjustment = Decimal(str(data.get("price_adjustment") or "0.00"))
    if len(name) < 2 or not value:
        raise errors.ValidationError("Variant needs a name (2+ characters) and a value")
    if adjustment < 0:
        raise errors.ValidationError("price_adjustment must not be negative")
    return ProductVariant(name=name, value=value, price_adjustment=adjustment)


def _build_ingredient(data: dict) -> ProductIngredient:
    name = (data.get("name") or "").strip()
    if len(name) < 2:
        raise errors.ValidationError("Ingredient name must have at least 2 characters")
    return ProductIngredient(name=name)


def get_variant(db: Session, variant_id: int) -> ProductVariant:
    variant = db.get(ProductVariant, variant_id)
    if variant is None:
        raise errors.NotFound("Variant not found")
    return variant


def create_variant(db: Session, product_id: int, **data) -> ProductVariant:
    product = get_product(db, product_id)
    variant = _build_variant(data)
    with transaction(db):
        variant.product_id = product.id
        db.add(variant)
    db.refresh(variant)
    return variant


def update_variant(db: Session, variant_id: int, **changes) -> ProductVariant:
    variant = get_variant(db, variant_id)
    merged = {
        "name": changes.get("name") or variant.name,
        "value": changes.get("value") or variant.value,
        "price_adjustment": changes["price_adjustment"] if changes.get("price_adjustment") is not None
        else variant.price_adjustment,
    }
    checked = _build_variant(merged)
    with transaction(db):
        variant.name, variant.value = checked.name, checked.value
        variant.price_adjustment = checked.price_adjustment
    db.refresh(variant)
    return variant


def delete_variant(db: Session, variant_id: int) -> None:
    variant = get_variant(db, variant_id)
    with transaction(db):
        # Past orders keep their frozen prices but lose the variant link
        db.query(OrderItem).filter(OrderItem.variant_id == variant.id).update(
            {OrderItem.variant_id: None}, synchronize_session=False
        )
        db.query(CartItem).filter(CartItem.variant_id == variant.id).delete(synchronize_session=False)
        db.delete(variant)


def create_ingredient(db: Session, product_id: int, *, name: str) -> ProductIngredient:
    product = get_product(db, product_id)
    ingredient = _build_ingredient({"name": name})
    with transaction(db):
        ingredient.product_id = product.id
        db.add(ingredient)
    db.refresh(ingredient)
    return ingredient


def update_ingredient(db: Session, ingredient_id: int, *, name: str) -> ProductIngredient:
    ingredient = db.get(ProductIngredient, ingredient_id)
    if ingredient is None:
        raise errors.NotFound("Ingredient not found")
    checked = _build_ingredient({"name": name})
    with transaction(db):
        ingredient.name = checked.name
    db.refresh(ingredient)
    return ingredient


def delete_ingredient(db: Session, ingredient_id: int) -> None:
    ingredient = db.get(ProductIngredient, ingredient_id)
    if ingredient is None:
        raise errors.NotFound("Ingredient not found")
    with transaction(db):
        db.delete(ingredient)
