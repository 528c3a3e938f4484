# backend/services/checkout.py
"""
Two-step checkout: `start_checkout` issues an OTP and parks the delivery
details; `complete_checkout` verifies the code and runs the order engine
once per valid code.
"""
import logging

from sqlalchemy.orm import Session

from services import cart as cart_service
from services import errors
from services import orders as order_service
from services.otp import OtpGate, OtpResult

logger = logging.getLogger(__name__)


def pending_key(user_id: int) -> str:
    return f"checkout:pending:user:{user_id}"


def start_checkout(db: Session, user, delivery, gate: OtpGate, notifier) -> int:
    """Returns the number of seconds the issued code stays valid."""
    rows = cart_service.snapshot(db, user.id)
    if not rows:
        raise errors.EmptyCart()

    shortages = cart_service.stock_shortages(rows)
    if shortages:
        raise errors.InsufficientStock(shortages)

    if hasattr(delivery, "model_dump"):
        delivery = delivery.model_dump()

    code = gate.issue(user.id)
    # Kept exactly as long as the code so both expire together
    gate.cache.put(pending_key(user.id), dict(delivery), gate.ttl_seconds)
    notifier.otp_issued(user, code)
    return gate.ttl_seconds


def complete_checkout(db: Session, user, code: str, gate: OtpGate, notifier):
    result = gate.verify(user.id, code)

    if result == OtpResult.EXPIRED:
        gate.cache.delete(pending_key(user.id))
        raise errors.OtpExpired()
    if result == OtpResult.INVALID:
        raise errors.OtpInvalid()

    delivery = gate.cache.pop(pending_key(user.id))
    if delivery is None:
        raise errors.NotFound("No pending order found. Please restart checkout.")

    order = order_service.create_order_from_cart(db, user.id, delivery)
    notifier.order_confirmed(order)
    return order
