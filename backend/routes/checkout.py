# backend/routes/checkout.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from routes.orders import order_to_out
from schemas.checkout import DeliveryInfo, CheckoutStarted, OtpSubmit, CheckoutCompleted
from services import checkout as checkout_service
from services import errors
from services.otp import OtpGate
from utils.audit import write_log, client_ip
from utils.notifications import NotificationSink
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/checkout", tags=["Checkout"])


# Shared objects created in main.py's lifespan
def get_otp_gate(request: Request) -> OtpGate:
    return request.app.state.otp_gate


def get_notifier(request: Request) -> NotificationSink:
    return request.app.state.notifier


# Step 1: validate the cart, send an OTP and remember the delivery details
@router.post("/confirm", response_model=CheckoutStarted)
def confirm_checkout(
    payload: DeliveryInfo,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gate: OtpGate = Depends(get_otp_gate),
    notifier: NotificationSink = Depends(get_notifier),
):
    expires_in = checkout_service.start_checkout(db, current_user, payload, gate, notifier)
    write_log(db, user_id=current_user.id, action="CHECKOUT_OTP", resource="checkout", status="SUCCESS",
              ip=client_ip(request), meta={"expires_in": expires_in})
    return CheckoutStarted(
        message="An OTP has been sent to your email. Enter it to confirm your order.",
        expires_in=expires_in,
    )


# Step 2: verify the OTP and place the order
@router.post("/verify-otp", response_model=CheckoutCompleted, status_code=status.HTTP_201_CREATED)
def verify_otp(
    payload: OtpSubmit,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gate: OtpGate = Depends(get_otp_gate),
    notifier: NotificationSink = Depends(get_notifier),
):
    try:
        order = checkout_service.complete_checkout(db, current_user, payload.otp, gate, notifier)
    except errors.ShopError as exc:
        write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders", status="FAIL",
                  ip=client_ip(request), meta={"reason": exc.detail})
        raise

    write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders", status="SUCCESS",
              ip=client_ip(request), meta={"order_id": order.id, "order_number": order.order_number,
                                           "total": str(order.total_amount)})
    return CheckoutCompleted(
        message=f"Order #{order.order_number} placed successfully!",
        order=order_to_out(order),
    )
