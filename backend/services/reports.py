# backend/services/reports.py
"""
Read-only sales and inventory figures.

Revenue and profit only count delivered orders (cash is collected on
delivery). Date ranges are inclusive calendar days in UTC.
"""
from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from models.category import Category
from models.order import Order, OrderStatus
from models.product import Product
from services import orders as order_service

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _bounds(start: date, end: date):
    # Stored timestamps are compared as naive UTC
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def _delivered(db: Session, start: Optional[date] = None, end: Optional[date] = None) -> List[Order]:
    if start is not None and end is not None:
        lower, upper = _bounds(start, end)
        return order_service.list_orders_by_date_range(db, lower, upper, status=OrderStatus.DELIVERED)
    return order_service.list_orders(db, OrderStatus.DELIVERED)


def _order_cost(order: Order) -> Decimal:
    return sum((item.product.cost_price * item.quantity for item in order.items), ZERO)


def _margin(profit: Decimal, revenue: Decimal) -> Decimal:
    if not revenue:
        return ZERO
    return _money(profit / revenue * 100)


def calculate_profit(db: Session, start: date, end: date) -> dict:
    orders = _delivered(db, start, end)
    revenue = sum((o.total_amount for o in orders), ZERO)
    cost = sum((_order_cost(o) for o in orders), ZERO)
    profit = revenue - cost
    return {
        "start_date": start,
        "end_date": end,
        "total_revenue": _money(revenue),
        "total_cost": _money(cost),
        "total_profit": _money(profit),
        "profit_margin": _margin(profit, revenue),
        "order_count": len(orders),
    }


def daily_profit_breakdown(db: Session, start: date, end: date) -> List[dict]:
    """One entry per day in the range, including days without sales."""
    days = OrderedDict()
    day = start
    while day <= end:
        days[day] = {"date": day, "revenue": ZERO, "cost": ZERO, "profit": ZERO, "order_count": 0}
        day += timedelta(days=1)

    for order in _delivered(db, start, end):
        entry = days.get(order.created_at.date())
        if entry is None:
            continue
        entry["revenue"] += order.total_amount
        entry["cost"] += _order_cost(order)
        entry["order_count"] += 1

    result = []
    for entry in days.values():
        entry["profit"] = _money(entry["revenue"] - entry["cost"])
        entry["revenue"] = _money(entry["revenue"])
        entry["cost"] = _money(entry["cost"])
        result.append(entry)
    return result


def _revenue(db: Session, start: Optional[date] = None, end: Optional[date] = None) -> Decimal:
    query = db.query(func.sum(Order.total_amount)).filter(Order.status == OrderStatus.DELIVERED)
    if start is not None and end is not None:
        lower, upper = _bounds(start, end)
        query = query.filter(Order.created_at >= lower, Order.created_at <= upper)
    return _money(query.scalar())


def revenue_stats(db: Session, today: Optional[date] = None) -> dict:
    today = today or _today()
    return {
        "today": _revenue(db, today, today),
        "this_week": _revenue(db, today - timedelta(days=6), today),
        "this_month": _revenue(db, today.replace(day=1), today),
        "all_time": _revenue(db),
    }


def _top_products(orders: List[Order], limit: int) -> List[dict]:
    totals = {}
    for order in orders:
        for item in order.items:
            entry = totals.setdefault(item.product_id, {
                "product_id": item.product_id,
                "product": item.product.name,
                "quantity_sold": 0,
                "revenue": ZERO,
            })
            entry["quantity_sold"] += item.quantity
            entry["revenue"] += item.total_price
    ranked = sorted(totals.values(), key=lambda e: (-e["quantity_sold"], e["product"]))
    for entry in ranked:
        entry["revenue"] = _money(entry["revenue"])
    return ranked[:limit]


def top_selling_products(db: Session, start: date, end: date, limit: int = 10) -> List[dict]:
    return _top_products(_delivered(db, start, end), limit)


def top_selling_products_all_time(db: Session, limit: int = 10) -> List[dict]:
    return _top_products(_delivered(db), limit)


def low_stock_report(db: Session) -> List[dict]:
    rows = (
        db.query(Product, Category.name)
        .outerjoin(Category, Product.category_id == Category.id)
        .filter(Product.stock_quantity > 0, Product.stock_quantity < settings.LOW_STOCK_THRESHOLD)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )
    return [
        {
            "product_id": p.id,
            "product": p.name,
            "category": category,
            "stock": p.stock_quantity,
            "status": "critical" if p.stock_quantity < settings.CRITICAL_STOCK_THRESHOLD else "low",
        }
        for p, category in rows
    ]


def out_of_stock_report(db: Session) -> List[dict]:
    rows = (
        db.query(Product, Category.name)
        .outerjoin(Category, Product.category_id == Category.id)
        .filter(Product.stock_quantity == 0)
        .order_by(Product.name.asc())
        .all()
    )
    return [
        {"product_id": p.id, "product": p.name, "category": category, "stock": p.stock_quantity}
        for p, category in rows
    ]


def dashboard_stats(db: Session, today: Optional[date] = None) -> dict:
    today = today or _today()
    total_orders = db.query(func.count(Order.id)).scalar() or 0
    pending = db.query(func.count(Order.id)).filter(Order.status == OrderStatus.PENDING).scalar() or 0
    low = (
        db.query(func.count(Product.id))
        .filter(Product.stock_quantity > 0, Product.stock_quantity < settings.LOW_STOCK_THRESHOLD)
        .scalar() or 0
    )
    out = db.query(func.count(Product.id)).filter(Product.stock_quantity == 0).scalar() or 0
    return {
        "total_orders": total_orders,
        "pending_orders": pending,
        "todays_revenue": _revenue(db, today, today),
        "low_stock_products": low,
        "out_of_stock_products": out,
    }
