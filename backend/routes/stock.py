# backend/routes/stock.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session, joinedload

from database import get_db
from models.product import Product
from models.stock import StockMovement
from models.users import User
import schemas.stock as stock_schemas
from services import catalog
from utils.audit import write_log, client_ip
from utils.tokenJWT import require_admin

router = APIRouter(prefix="/stock", tags=["Stock"])


def _movement_out(m: StockMovement, stock_after: Optional[int] = None) -> dict:
    return {
        "id": m.id,
        "created_at": m.created_at,
        "product_id": m.product_id,
        "product_name": m.product.name if m.product else "Unknown",
        "qty": m.qty,
        "type": (m.type or "").upper(),
        "reason": m.reason,
        "order_id": m.order_id,
        "user_id": m.user_id,
        "user_email": m.user.email if m.user else "System",
        "stock_after": stock_after,
    }


# Stock movement history: order sales, cancellations and manual corrections
@router.get("", response_model=stock_schemas.StockMovementPage)
def list_movements(
    q: Optional[str] = Query(None, description="Search by product name"),
    type: Optional[stock_schemas.StockMovementType] = Query(None),
    product_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    query = (
        db.query(StockMovement)
        .join(Product, StockMovement.product_id == Product.id)
        .options(joinedload(StockMovement.product), joinedload(StockMovement.user))
    )
    if q:
        query = query.filter(Product.name.ilike(f"%{q}%"))
    if type:
        query = query.filter(StockMovement.type == type)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)

    if order == "desc":
        query = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    else:
        query = query.order_by(StockMovement.created_at.asc(), StockMovement.id.asc())

    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": [_movement_out(m) for m in items], "total": total, "page": page, "page_size": page_size}


# Manual correction; the stock level never drops below zero
@router.post("/adjust", response_model=stock_schemas.StockMovementResponse)
def adjust_stock(
    payload: stock_schemas.StockAdjust,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    movement = catalog.adjust_stock(db, payload.product_id, payload.qty,
                                    user_id=current_user.id, reason=payload.reason)
    write_log(db, user_id=current_user.id, action="STOCK_ADJUSTMENT", resource="stock", status="SUCCESS",
              ip=client_ip(request), meta={"id": movement.id, "product_id": movement.product_id,
                                           "qty": movement.qty})
    return _movement_out(movement, stock_after=movement.product.stock_quantity)


def _change_out(db: Session, product_id: int) -> dict:
    movement = (
        db.query(StockMovement)
        .options(joinedload(StockMovement.product), joinedload(StockMovement.user))
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.id.desc())
        .first()
    )
    return _movement_out(movement, stock_after=movement.product.stock_quantity)


# Goods received from a supplier
@router.post("/in", response_model=stock_schemas.StockMovementResponse)
def receive_stock(
    payload: stock_schemas.StockChange,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = catalog.increase_stock(db, payload.product_id, payload.quantity,
                                     user_id=current_user.id, reason=payload.reason or "Goods received")
    write_log(db, user_id=current_user.id, action="STOCK_IN", resource="stock", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": product.id, "qty": payload.quantity})
    return _change_out(db, product.id)


# Write-off of spoiled or damaged goods; refused when stock is too low
@router.post("/out", response_model=stock_schemas.StockMovementResponse)
def write_off_stock(
    payload: stock_schemas.StockChange,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = catalog.reduce_stock(db, payload.product_id, payload.quantity,
                                   user_id=current_user.id, reason=payload.reason or "Write-off")
    write_log(db, user_id=current_user.id, action="STOCK_OUT", resource="stock", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": product.id, "qty": -payload.quantity})
    return _change_out(db, product.id)
