# backend/schemas/checkout.py
from pydantic import BaseModel, Field
from typing import Optional, Literal

from schemas.order import OrderResponse

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"

# Delivery details captured at checkout and copied onto the order
class DeliveryInfo(BaseModel):
    delivery_address: str = Field(min_length=1, max_length=500)
    delivery_phone: str = Field(pattern=PHONE_PATTERN, description="E.164, e.g. +254712345678")
    notes: Optional[str] = Field(default=None, max_length=1000)
    payment_method: Literal["cash"] = "cash"

# Response after an OTP was issued for a pending order
class CheckoutStarted(BaseModel):
    message: str
    expires_in: int

# OTP submitted by the customer to commit the pending order
class OtpSubmit(BaseModel):
    otp: str = Field(min_length=1, max_length=32)

class CheckoutCompleted(BaseModel):
    message: str
    order: OrderResponse
