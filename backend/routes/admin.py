# backend/routes/admin.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models.order import OrderStatus
from models.users import User
from routes.orders import order_to_out
from schemas.order import OrderResponse, OrdersPage, OrderStatusPatch, OrderStats
from services import orders as order_service
from utils.audit import write_log, client_ip
from utils.tokenJWT import require_admin

router = APIRouter(prefix="/admin/orders", tags=["Admin"])


def _log_status(db: Session, request: Request, user: User, order, action: str):
    write_log(db, user_id=user.id, action=action, resource="orders", status="SUCCESS",
              ip=client_ip(request), meta={"order_id": order.id, "order_number": order.order_number,
                                           "new_status": order.status.value})


# All orders, optionally filtered by status (Admin only)
@router.get("", response_model=OrdersPage)
def list_orders(
    status: Optional[OrderStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    rows = order_service.list_orders(db, status, offset=(page - 1) * page_size, limit=page_size)
    total = order_service.count_orders(db, status)
    return {"items": [order_to_out(o) for o in rows], "total": total, "page": page, "page_size": page_size}


@router.get("/stats", response_model=OrderStats)
def orders_stats(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return order_service.order_stats(db)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return order_to_out(order_service.get_order(db, order_id))


@router.put("/{order_id}/confirm", response_model=OrderResponse)
def confirm_order(order_id: int, request: Request, db: Session = Depends(get_db),
                  current_user: User = Depends(require_admin)):
    order = order_service.confirm(db, order_id)
    _log_status(db, request, current_user, order, "ORDER_CONFIRM")
    return order_to_out(order)


@router.put("/{order_id}/preparing", response_model=OrderResponse)
def mark_preparing(order_id: int, request: Request, db: Session = Depends(get_db),
                   current_user: User = Depends(require_admin)):
    order = order_service.mark_preparing(db, order_id)
    _log_status(db, request, current_user, order, "ORDER_PREPARING")
    return order_to_out(order)


@router.put("/{order_id}/out-for-delivery", response_model=OrderResponse)
def mark_out_for_delivery(order_id: int, request: Request, db: Session = Depends(get_db),
                          current_user: User = Depends(require_admin)):
    order = order_service.mark_out_for_delivery(db, order_id)
    _log_status(db, request, current_user, order, "ORDER_OUT_FOR_DELIVERY")
    return order_to_out(order)


@router.put("/{order_id}/delivered", response_model=OrderResponse)
def mark_delivered(order_id: int, request: Request, db: Session = Depends(get_db),
                   current_user: User = Depends(require_admin)):
    order = order_service.mark_delivered(db, order_id)
    _log_status(db, request, current_user, order, "ORDER_DELIVERED")
    return order_to_out(order)


@router.put("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(order_id: int, request: Request, db: Session = Depends(get_db),
                 current_user: User = Depends(require_admin)):
    order = order_service.cancel(db, order_id)
    _log_status(db, request, current_user, order, "ORDER_CANCEL")
    return order_to_out(order)


# Generic status change, validated against the allowed transitions
@router.patch("/{order_id}/status", response_model=OrderResponse)
def patch_status(order_id: int, payload: OrderStatusPatch, request: Request, db: Session = Depends(get_db),
                 current_user: User = Depends(require_admin)):
    order = order_service.update_status(db, order_id, payload.status)
    _log_status(db, request, current_user, order, "ORDER_STATUS")
    return order_to_out(order)
