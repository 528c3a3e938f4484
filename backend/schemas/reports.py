# schemas/reports.py
from datetime import date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel

# Profit over a date range (delivered orders only)
class ProfitSummary(BaseModel):
    start_date: date
    end_date: date
    total_revenue: Decimal
    total_cost: Decimal
    total_profit: Decimal
    profit_margin: Decimal
    order_count: int

class DailyProfit(BaseModel):
    date: date
    revenue: Decimal
    cost: Decimal
    profit: Decimal
    order_count: int

class RevenueStats(BaseModel):
    today: Decimal
    this_week: Decimal
    this_month: Decimal
    all_time: Decimal

class TopProduct(BaseModel):
    product_id: int
    product: str
    quantity_sold: int
    revenue: Decimal

# Schemas for low stock alerting
class LowStockItem(BaseModel):
    product_id: int
    product: str
    category: Optional[str] = None
    stock: int
    status: str

class OutOfStockItem(BaseModel):
    product_id: int
    product: str
    category: Optional[str] = None
    stock: int

class InventoryReport(BaseModel):
    low_stock: List[LowStockItem]
    out_of_stock: List[OutOfStockItem]

class DashboardStats(BaseModel):
    total_orders: int
    pending_orders: int
    todays_revenue: Decimal
    low_stock_products: int
    out_of_stock_products: int
