# backend/services/errors.py
"""
Domain errors raised by the service layer.

Routes never translate these by hand: main.py registers a single exception
handler that renders `detail` (and `items` for stock shortages) with the
error's `status_code`.
"""
from typing import List, Optional


class ShopError(Exception):
    status_code = 400
    default_detail = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail}


class EmptyCart(ShopError):
    status_code = 400
    default_detail = "Your cart is empty"


class InsufficientStock(ShopError):
    status_code = 409
    default_detail = "Some items are out of stock"

    def __init__(self, items: List, detail: Optional[str] = None):
        self.items = list(items)
        super().__init__(detail or self._format(self.items))

    @staticmethod
    def _format(items) -> str:
        if not items:
            return InsufficientStock.default_detail
        parts = [f"{i.product} (requested: {i.requested}, available: {i.available})" for i in items]
        return "Some items are out of stock: " + ", ".join(parts)

    def to_dict(self) -> dict:
        return {
            "detail": self.detail,
            "items": [
                {
                    "product_id": i.product_id,
                    "product": i.product,
                    "requested": i.requested,
                    "available": i.available,
                }
                for i in self.items
            ],
        }


class CannotCancel(ShopError):
    status_code = 409
    default_detail = "This order cannot be cancelled"


class InvalidTransition(ShopError):
    status_code = 409
    default_detail = "Order status change not allowed"


class ValidationError(ShopError):
    status_code = 422
    default_detail = "Invalid data"


class NotFound(ShopError):
    status_code = 404
    default_detail = "Not found"


class ReferenceConflict(ShopError):
    status_code = 409
    default_detail = "Resource is still referenced"


class OtpExpired(ShopError):
    status_code = 410
    default_detail = "OTP has expired. Please restart checkout."


class OtpInvalid(ShopError):
    status_code = 400
    default_detail = "Invalid OTP code. Please try again."


class PersistenceError(ShopError):
    status_code = 503
    default_detail = "Could not save changes, please try again"
