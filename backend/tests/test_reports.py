from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from conftest import make_product, make_user
from models.order import Order, OrderItem, OrderStatus, PaymentStatus
from services import reports

TODAY = date(2026, 10, 19)


def _order(db, user, product, quantity, unit_price, status=OrderStatus.DELIVERED, day=TODAY, number=None):
    unit_price = Decimal(unit_price)
    order = Order(
        user_id=user.id,
        order_number=number or f"ORD-{day:%Y%m%d}-{db.query(Order).count():04d}",
        status=status,
        payment_status=PaymentStatus.PAID if status == OrderStatus.DELIVERED else PaymentStatus.PENDING,
        total_amount=unit_price * quantity,
        created_at=datetime.combine(day, datetime.min.time()) + timedelta(hours=12),
    )
    order.items.append(OrderItem(product_id=product.id, quantity=quantity,
                                 unit_price=unit_price, total_price=unit_price * quantity))
    db.add(order)
    db.commit()
    return order


@pytest.fixture
def sales(db, shop):
    user, juice = shop["user"], shop["juice"]
    samosa = make_product(db, shop["category"], name="Samosa", selling="40.00", cost="15.00", stock=80)
    _order(db, user, juice, 2, "120.00")
    _order(db, user, samosa, 5, "40.00")
    _order(db, user, juice, 1, "120.00", day=TODAY - timedelta(days=3))
    _order(db, user, juice, 10, "120.00", status=OrderStatus.PENDING)
    _order(db, user, samosa, 1, "40.00", day=TODAY - timedelta(days=40))
    return {"juice": juice, "samosa": samosa}


def test_profit_counts_only_delivered_orders_in_range(db, sales):
    summary = reports.calculate_profit(db, TODAY - timedelta(days=6), TODAY)

    # revenue 240 + 200 + 120, cost 120 + 75 + 60
    assert summary["order_count"] == 3
    assert summary["total_revenue"] == Decimal("560.00")
    assert summary["total_cost"] == Decimal("255.00")
    assert summary["total_profit"] == Decimal("305.00")
    assert summary["profit_margin"] == Decimal("54.46")


def test_profit_of_empty_range_is_zero(db, sales):
    summary = reports.calculate_profit(db, date(2020, 1, 1), date(2020, 1, 31))
    assert summary["total_revenue"] == Decimal("0.00")
    assert summary["profit_margin"] == Decimal("0.00")


def test_daily_breakdown_includes_quiet_days(db, sales):
    days = reports.daily_profit_breakdown(db, TODAY - timedelta(days=3), TODAY)

    assert [d["date"] for d in days] == [TODAY - timedelta(days=n) for n in (3, 2, 1, 0)]
    assert days[0]["revenue"] == Decimal("120.00")
    assert days[1]["order_count"] == 0
    assert days[3]["revenue"] == Decimal("440.00")
    assert days[3]["profit"] == Decimal("245.00")


def test_revenue_stats(db, sales):
    stats = reports.revenue_stats(db, today=TODAY)
    assert stats["today"] == Decimal("440.00")
    assert stats["this_week"] == Decimal("560.00")
    assert stats["this_month"] == Decimal("560.00")
    assert stats["all_time"] == Decimal("600.00")


def test_top_selling_products(db, sales):
    top = reports.top_selling_products(db, TODAY - timedelta(days=6), TODAY)
    assert [(t["product"], t["quantity_sold"]) for t in top] == [("Samosa", 5), ("Juice", 3)]

    all_time = reports.top_selling_products_all_time(db, limit=1)
    assert [(t["product"], t["quantity_sold"], t["revenue"]) for t in all_time] == [("Samosa", 6, Decimal("240.00"))]


def test_inventory_reports(db, shop):
    make_product(db, shop["category"], name="Mandazi", stock=8)
    make_product(db, shop["category"], name="Chips Masala", stock=4)
    make_product(db, shop["category"], name="Crisps", stock=0)

    low = reports.low_stock_report(db)
    assert [(i["product"], i["status"], i["category"]) for i in low] == [
        ("Chips Masala", "critical", "Drinks"),
        ("Mandazi", "low", "Drinks"),
    ]
    assert [i["product"] for i in reports.out_of_stock_report(db)] == ["Crisps"]


def test_dashboard_stats(db, sales):
    make_product(db, sales["juice"].category, name="Crisps", stock=0)
    stats = reports.dashboard_stats(db, today=TODAY)

    assert stats["total_orders"] == 5
    assert stats["pending_orders"] == 1
    assert stats["todays_revenue"] == Decimal("440.00")
    assert stats["out_of_stock_products"] == 1
    assert stats["low_stock_products"] == 0
