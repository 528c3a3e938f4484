import os

# Must be set before config/database are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ORDER_NUMBER_RETRY_BACKOFF"] = "0"

from decimal import Decimal

import pytest

from database import Base, SessionLocal, engine, init_db
from models.category import Category
from models.product import Product, ProductVariant
from models.users import User
from services.otp import OtpGate
from utils.cache import TTLCache
from utils.hashing import get_password_hash

PASSWORD = "Secret123"


class RecordingNotifier:
    def __init__(self):
        self.codes = {}
        self.confirmed = []

    def otp_issued(self, user, code):
        self.codes[user.id] = code

    def order_confirmed(self, order):
        self.confirmed.append(order.order_number)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def tables():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(tables):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gate(clock):
    return OtpGate(TTLCache(clock=clock), ttl_seconds=300, length=6)


@pytest.fixture
def notifier():
    return RecordingNotifier()


def make_user(db, email="jane@snackshop.co.ke", role="customer"):
    user = User(email=email, password_hash=get_password_hash(PASSWORD), role=role,
                first_name="Jane", last_name="Wanjiru", phone_number="+254712345678")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_category(db, name="Drinks"):
    category = Category(name=name, slug=name.lower())
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def make_product(db, category, name="Juice", selling="120.00", cost="60.00", stock=50, available=True):
    product = Product(
        category_id=category.id,
        name=name,
        slug=name.lower().replace(" ", "-"),
        cost_price=Decimal(cost),
        selling_price=Decimal(selling),
        stock_quantity=stock,
        is_available=available,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_variant(db, product, name="Size", value="Large", adjustment="100.00"):
    variant = ProductVariant(product_id=product.id, name=name, value=value, price_adjustment=Decimal(adjustment))
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


@pytest.fixture
def shop(db):
    """A customer, the Drinks category and Juice (stock 50, 120.00) with a Large (+100.00) variant."""
    user = make_user(db)
    drinks = make_category(db)
    juice = make_product(db, drinks)
    large = make_variant(db, juice)
    return {"user": user, "category": drinks, "juice": juice, "large": large}


DELIVERY = {
    "delivery_address": "Moi Avenue 12, Nairobi",
    "delivery_phone": "+254712345678",
    "notes": "Ring twice",
    "payment_method": "cash",
}
