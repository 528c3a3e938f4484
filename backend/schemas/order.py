from pydantic import BaseModel
from decimal import Decimal
from typing import List, Optional, Dict
from datetime import datetime

from models.order import OrderStatus


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    variant_id: Optional[int] = None
    variant: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    status_display: str
    total_amount: Decimal
    payment_method: str
    payment_status: str
    delivery_address: Optional[str] = None
    delivery_phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    user_id: int
    items: List[OrderItemOut]

# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int

# Schema for updating order status
class OrderStatusPatch(BaseModel):
    status: OrderStatus

# Order counts per status (admin dashboard)
class OrderStats(BaseModel):
    total: int
    by_status: Dict[str, int]
