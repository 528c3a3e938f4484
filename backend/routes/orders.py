# backend/routes/orders.py
import logging
from typing import List

from fastapi import APIRouter, Depends, Request, Query
from sqlalchemy.orm import Session

from database import get_db
from models.order import Order
from models.users import User
from schemas.order import OrderResponse, OrdersPage, OrderItemOut
from services import orders as order_service
from utils.audit import write_log, client_ip
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)


# Map Order model to OrderResponse schema
def order_to_out(order: Order) -> OrderResponse:
    items: List[OrderItemOut] = []
    for it in order.items:
        items.append(OrderItemOut(
            product_id=it.product_id,
            product_name=it.product.name if it.product else "Deleted product",
            variant_id=it.variant_id,
            variant=it.variant.display_text if it.variant else None,
            quantity=it.quantity,
            unit_price=it.unit_price,
            line_total=it.total_price,
        ))
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        status_display=order_service.status_display(order.status),
        total_amount=order.total_amount,
        payment_method=order.payment_method.value,
        payment_status=order.payment_status.value,
        delivery_address=order.delivery_address,
        delivery_phone=order.delivery_phone,
        notes=order.notes,
        created_at=order.created_at,
        confirmed_at=order.confirmed_at,
        delivered_at=order.delivered_at,
        user_id=order.user_id,
        items=items,
    )


# List the current user's orders, newest first
@router.get("", response_model=OrdersPage)
def list_my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = order_service.list_user_orders(db, current_user.id, offset=(page - 1) * page_size, limit=page_size)
    total = order_service.count_orders(db, user_id=current_user.id)
    return {"items": [order_to_out(o) for o in rows], "total": total, "page": page, "page_size": page_size}


@router.get("/{order_id}", response_model=OrderResponse)
def get_my_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return order_to_out(order_service.get_user_order(db, current_user.id, order_id))


# Customers may cancel their own order while it is pending or confirmed
@router.put("/{order_id}/cancel", response_model=OrderResponse)
def cancel_my_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.cancel(db, order_id, user_id=current_user.id)
    write_log(db, user_id=current_user.id, action="ORDER_CANCEL", resource="orders", status="SUCCESS",
              ip=client_ip(request), meta={"order_id": order.id, "order_number": order.order_number})
    return order_to_out(order)
