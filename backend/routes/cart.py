# backend/routes/cart.py
from fastapi import APIRouter, Depends, status, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.cart import CartAddItem, CartUpdateItem, CartOut, CartItemOut, CartCount, StockShortageOut
from services import cart as cart_service
from utils.audit import write_log, client_ip
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/cart", tags=["Cart"])


def _cart_to_out(db: Session, user_id: int) -> CartOut:
    rows = cart_service.snapshot(db, user_id)
    items_out = [
        CartItemOut(
            id=row.id,
            product_id=row.product_id,
            variant_id=row.variant_id,
            name=row.product.name,
            variant=row.variant.display_text if row.variant else None,
            quantity=row.quantity,
            unit_price=row.unit_price,
            line_total=row.subtotal,
        )
        for row in rows
    ]
    shortages = cart_service.stock_shortages(rows)
    return CartOut(
        items=items_out,
        total=cart_service.cart_total(rows),
        stock_valid=not shortages,
        stock_errors=[StockShortageOut(**vars(s)) for s in shortages],
        unavailable=cart_service.unavailable_products(rows),
    )


@router.get("", response_model=CartOut)
def get_cart(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _cart_to_out(db, current_user.id)


@router.get("/count", response_model=CartCount)
def get_cart_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return CartCount(
        items=cart_service.count_items(db, current_user.id),
        quantity=cart_service.count_quantity(db, current_user.id),
    )


@router.post("/add", response_model=CartOut, status_code=status.HTTP_200_OK)
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    row = cart_service.add_item(db, current_user.id, payload.product_id, payload.variant_id, payload.quantity)
    out = _cart_to_out(db, current_user.id)

    write_log(
        db,
        user_id=current_user.id,
        action="CART_ADD",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"product_id": row.product_id, "variant_id": row.variant_id, "qty": payload.quantity,
              "cart_items": len(out.items), "total": str(out.total)},
    )
    return out


@router.put("/items/{item_id}", response_model=CartOut)
def update_cart_item(
    item_id: int,
    payload: CartUpdateItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart_service.update_quantity(db, current_user.id, item_id, payload.quantity)
    out = _cart_to_out(db, current_user.id)

    write_log(
        db,
        user_id=current_user.id,
        action="CART_UPDATE",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"item_id": item_id, "qty": payload.quantity, "total": str(out.total)},
    )
    return out


@router.delete("/items/{item_id}", response_model=CartOut)
def delete_cart_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cart_service.remove_item(db, current_user.id, item_id)
    out = _cart_to_out(db, current_user.id)

    write_log(
        db,
        user_id=current_user.id,
        action="CART_DELETE",
        resource="cart",
        status="SUCCESS",
        ip=client_ip(request),
        meta={"item_id": item_id, "cart_items": len(out.items), "total": str(out.total)},
    )
    return out


@router.delete("", response_model=CartOut)
def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    removed = cart_service.clear(db, current_user.id)
    write_log(db, user_id=current_user.id, action="CART_CLEAR", resource="cart", status="SUCCESS",
              ip=client_ip(request), meta={"removed": removed})
    return _cart_to_out(db, current_user.id)
