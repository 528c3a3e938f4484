from decimal import Decimal

import pytest

from conftest import DELIVERY, make_user
from models.product import ProductVariant
from models.stock import StockMovement
from services import cart as cart_service
from services import catalog
from services import errors
from services import orders as order_service


@pytest.fixture
def drinks(db):
    return catalog.create_category(db, name="Cold Drinks", description="Sodas and juices")


def _juice(db, category, **overrides):
    data = dict(category_id=category.id, name="Mango Juice", cost_price=Decimal("60.00"),
                selling_price=Decimal("120.00"), stock_quantity=20)
    data.update(overrides)
    return catalog.create_product(db, **data)


def test_slugify():
    assert catalog.slugify("Chips & Masala!") == "chips-masala"
    assert catalog.slugify("  Cold   Drinks ") == "cold-drinks"


def test_category_crud(db, drinks):
    assert drinks.slug == "cold-drinks"
    assert catalog.get_category_by_slug(db, "cold-drinks").id == drinks.id

    updated = catalog.update_category(db, drinks.id, name="Drinks")
    assert (updated.name, updated.slug) == ("Drinks", "drinks")

    with pytest.raises(errors.ValidationError):
        catalog.create_category(db, name="drinks")

    catalog.delete_category(db, drinks.id)
    assert catalog.list_categories(db) == []


def test_category_with_products_cannot_be_deleted(db, drinks):
    _juice(db, drinks)
    with pytest.raises(errors.ReferenceConflict):
        catalog.delete_category(db, drinks.id)


def test_create_product_with_variants_and_ingredients(db, drinks):
    product = _juice(
        db, drinks,
        variants=[{"name": "Size", "value": "Large", "price_adjustment": Decimal("100.00")}],
        ingredients=[{"name": "Mango"}, {"name": "Sugar"}],
    )

    assert product.slug == "mango-juice"
    assert [v.display_text for v in product.variants] == ["Size: Large"]
    assert product.variants[0].final_price() == Decimal("220.00")
    assert [i.name for i in product.ingredients] == ["Mango", "Sugar"]
    assert product.profit_amount == Decimal("60.00")
    assert product.profit_margin == Decimal("100.00")
    initial = db.query(StockMovement).filter(StockMovement.product_id == product.id).one()
    assert (initial.qty, initial.type) == (20, "IN")


def test_invalid_products_are_rejected(db, drinks):
    with pytest.raises(errors.ValidationError):
        _juice(db, drinks, selling_price=Decimal("50.00"))
    with pytest.raises(errors.ValidationError):
        _juice(db, drinks, category_id=999)
    with pytest.raises(errors.ValidationError):
        _juice(db, drinks, variants=[{"name": "Size", "value": "XL", "price_adjustment": Decimal("-1")}])
    _juice(db, drinks)
    with pytest.raises(errors.ValidationError):
        _juice(db, drinks, name="Mango  Juice")
    assert catalog.count_products(db) == 1


def test_update_product_records_stock_change(db, drinks):
    product = _juice(db, drinks)

    updated = catalog.update_product(db, product.id, selling_price=Decimal("130.00"), stock_quantity=25)

    assert updated.selling_price == Decimal("130.00")
    assert updated.stock_quantity == 25
    edit = db.query(StockMovement).filter(StockMovement.type == "ADJUSTMENT").one()
    assert edit.qty == 5


def test_product_queries(db, drinks):
    juice = _juice(db, drinks, description="Fresh mango")
    _juice(db, drinks, name="Soda", stock_quantity=0)
    _juice(db, drinks, name="Secret Brew", is_available=False)

    assert [p.name for p in catalog.list_available_products(db)] == ["Mango Juice"]
    assert [p.name for p in catalog.search_products(db, "MANGO")] == ["Mango Juice"]
    assert catalog.get_product_by_slug(db, "mango-juice").id == juice.id
    assert len(catalog.list_products(db)) == 3
    assert catalog.count_products_by_category(db, drinks.id) == 3
    assert {p.name for p in catalog.list_products_by_category_slug(db, "cold-drinks")} == {"Mango Juice", "Soda"}
    assert [p.name for p in catalog.out_of_stock_products(db)] == ["Soda"]


def test_low_stock_products(db, drinks):
    _juice(db, drinks, name="Few", stock_quantity=3)
    _juice(db, drinks, name="Plenty", stock_quantity=30)
    assert [p.name for p in catalog.low_stock_products(db)] == ["Few"]


def test_reduce_and_increase_stock(db, drinks):
    product = _juice(db, drinks, stock_quantity=5)

    assert catalog.reduce_stock(db, product.id, 3).stock_quantity == 2
    with pytest.raises(errors.ValidationError):
        catalog.reduce_stock(db, product.id, 3)
    assert catalog.get_product(db, product.id).stock_quantity == 2
    assert catalog.increase_stock(db, product.id, 8).stock_quantity == 10


def test_adjust_stock_never_goes_negative(db, drinks):
    admin = make_user(db, email="admin@snackshop.co.ke", role="admin")
    product = _juice(db, drinks, stock_quantity=4)

    movement = catalog.adjust_stock(db, product.id, -4, user_id=admin.id, reason="Spoiled")
    assert (movement.qty, movement.type, movement.user_id) == (-4, "ADJUSTMENT", admin.id)
    with pytest.raises(errors.ValidationError):
        catalog.adjust_stock(db, product.id, -1)
    assert catalog.update_stock(db, product.id, 12).stock_quantity == 12


def test_product_in_orders_cannot_be_deleted(db, drinks):
    user = make_user(db)
    product = _juice(db, drinks)
    cart_service.add_item(db, user.id, product.id)
    order_service.create_order_from_cart(db, user.id, DELIVERY)

    with pytest.raises(errors.ReferenceConflict):
        catalog.delete_product(db, product.id)


def test_delete_product_cascades_to_variants_and_carts(db, drinks):
    user = make_user(db)
    product = _juice(db, drinks, variants=[{"name": "Size", "value": "Large", "price_adjustment": Decimal("10")}])
    cart_service.add_item(db, user.id, product.id)

    catalog.delete_product(db, product.id)

    assert catalog.count_products(db) == 0
    assert db.query(ProductVariant).count() == 0
    assert cart_service.is_empty(db, user.id)


def test_variant_removal_keeps_order_history(db, drinks):
    user = make_user(db)
    product = _juice(db, drinks, variants=[{"name": "Size", "value": "Large", "price_adjustment": Decimal("100")}])
    variant = product.variants[0]
    cart_service.add_item(db, user.id, product.id, variant.id, quantity=1)
    order = order_service.create_order_from_cart(db, user.id, DELIVERY)

    catalog.delete_variant(db, variant.id)

    item = order_service.get_order(db, order.id).items[0]
    assert item.variant_id is None
    assert item.unit_price == Decimal("220.00")


def test_variant_and_ingredient_updates(db, drinks):
    product = _juice(db, drinks)
    variant = catalog.create_variant(db, product.id, name="Size", value="Small")
    assert variant.price_adjustment == Decimal("0.00")
    assert catalog.update_variant(db, variant.id, price_adjustment=Decimal("15.50")).price_adjustment == Decimal("15.50")

    ingredient = catalog.create_ingredient(db, product.id, name="Mango")
    assert catalog.update_ingredient(db, ingredient.id, name="Ripe mango").name == "Ripe mango"
    catalog.delete_ingredient(db, ingredient.id)
    assert catalog.get_product(db, product.id).ingredients == []

    with pytest.raises(errors.NotFound):
        catalog.delete_variant(db, 999)
