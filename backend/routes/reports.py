# routes/reports.py
from datetime import date, datetime, timedelta, timezone
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.reports import (
    ProfitSummary, DailyProfit, RevenueStats, TopProduct,
    InventoryReport, DashboardStats,
)
from services import reports
from utils.tokenJWT import require_admin

router = APIRouter(prefix="/reports", tags=["Reports"])


def _range(start_date: Optional[date], end_date: Optional[date], default_days: int = 30):
    # Defaults to the last `default_days` days, today included
    end = end_date or datetime.now(timezone.utc).date()
    start = start_date or end - timedelta(days=default_days - 1)
    if start > end:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")
    return start, end


@router.get("/profit", response_model=ProfitSummary)
def report_profit(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    start, end = _range(start_date, end_date)
    return reports.calculate_profit(db, start, end)


@router.get("/daily", response_model=List[DailyProfit])
def report_daily(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    start, end = _range(start_date, end_date, default_days=7)
    if (end - start).days > 366:
        raise HTTPException(status_code=400, detail="Date range too long (max 1 year)")
    return reports.daily_profit_breakdown(db, start, end)


@router.get("/revenue", response_model=RevenueStats)
def report_revenue(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return reports.revenue_stats(db)


@router.get("/top-products", response_model=List[TopProduct])
def report_top_products(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    all_time: bool = Query(False),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    if all_time:
        return reports.top_selling_products_all_time(db, limit)
    start, end = _range(start_date, end_date)
    return reports.top_selling_products(db, start, end, limit)


@router.get("/inventory", response_model=InventoryReport)
def report_inventory(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return {"low_stock": reports.low_stock_report(db), "out_of_stock": reports.out_of_stock_report(db)}


@router.get("/dashboard", response_model=DashboardStats)
def report_dashboard(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return reports.dashboard_stats(db)
