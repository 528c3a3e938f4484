"""
Fill an empty database with a small demo catalog and an admin account.

Usage (from the backend folder):  python seed.py
"""
import os
import sys
from decimal import Decimal

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from database import SessionLocal, init_db
from models.users import User
from services import catalog
from utils.hashing import get_password_hash

ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@snackshop.com")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "Admin1234")

CATALOG = {
    "Drinks": [
        {
            "name": "Fresh Juice", "cost_price": "60.00", "selling_price": "120.00", "stock_quantity": 50,
            "description": "Freshly squeezed mango and passion juice.",
            "variants": [
                {"name": "Size", "value": "Small", "price_adjustment": "0.00"},
                {"name": "Size", "value": "Large", "price_adjustment": "100.00"},
            ],
        },
        {"name": "Soda", "cost_price": "40.00", "selling_price": "70.00", "stock_quantity": 120},
        {"name": "Bottled Water", "cost_price": "20.00", "selling_price": "50.00", "stock_quantity": 200},
    ],
    "Snacks": [
        {
            "name": "Samosa", "cost_price": "15.00", "selling_price": "40.00", "stock_quantity": 80,
            "ingredients": [{"name": "Minced beef"}, {"name": "Onion"}, {"name": "Pastry"}],
        },
        {"name": "Mandazi", "cost_price": "5.00", "selling_price": "20.00", "stock_quantity": 8},
        {"name": "Crisps", "cost_price": "30.00", "selling_price": "60.00", "stock_quantity": 0},
    ],
    "Food": [
        {
            "name": "Chicken Burger", "cost_price": "250.00", "selling_price": "450.00", "stock_quantity": 25,
            "variants": [{"name": "Extra", "value": "Cheese", "price_adjustment": "50.00"}],
            "ingredients": [{"name": "Chicken"}, {"name": "Bun"}, {"name": "Lettuce"}],
        },
        {"name": "Chips Masala", "cost_price": "100.00", "selling_price": "250.00", "stock_quantity": 4},
    ],
}


def seed():
    init_db()
    session = SessionLocal()
    try:
        if not session.query(User).filter(User.email == ADMIN_EMAIL).first():
            session.add(User(email=ADMIN_EMAIL, password_hash=get_password_hash(ADMIN_PASSWORD), role="admin",
                             first_name="Shop", last_name="Admin"))
            session.commit()
            print(f"Created admin account {ADMIN_EMAIL}")

        if catalog.count_products(session):
            print("Catalog already populated, skipping products.")
            return

        for category_name, products in CATALOG.items():
            category = catalog.create_category(session, name=category_name)
            for data in products:
                data = dict(data)
                data["cost_price"] = Decimal(data["cost_price"])
                data["selling_price"] = Decimal(data["selling_price"])
                catalog.create_product(session, category_id=category.id, **data)
            print(f"{category_name}: {len(products)} products")
    finally:
        session.close()


if __name__ == "__main__":
    seed()
