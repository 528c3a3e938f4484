# backend/utils/notifications.py
import logging

logger = logging.getLogger(__name__)


class NotificationSink:
    """
    Receives the two events raised by checkout. Delivery (e-mail, SMS) is
    the caller's concern; this default implementation only logs them.
    """

    def otp_issued(self, user, code: str) -> None:
        # TODO: send the code by e-mail once an SMTP relay is configured
        logger.info("OTP for %s: %s", user.email, code)

    def order_confirmed(self, order) -> None:
        logger.info("Order confirmation for order #%s (user_id=%s, total=%s)",
                    order.order_number, order.user_id, order.total_amount)
