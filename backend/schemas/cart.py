from pydantic import BaseModel, Field
from decimal import Decimal
from typing import List, Optional

# Request schema for adding an item to the cart
class CartAddItem(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(default=1, gt=0, le=100)

# Request schema for updating cart item quantity
class CartUpdateItem(BaseModel):
    quantity: int = Field(gt=0, le=100)

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    name: str
    variant: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal

# Cart line whose quantity exceeds current stock
class StockShortageOut(BaseModel):
    product_id: int
    product: str
    requested: int
    available: int

# Response schema for the entire cart summary
class CartOut(BaseModel):
    items: List[CartItemOut]
    total: Decimal
    stock_valid: bool = True
    stock_errors: List[StockShortageOut] = []
    unavailable: List[str] = []

class CartCount(BaseModel):
    items: int
    quantity: int
