# backend/schemas/stock.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import List, Optional, Literal

# Define allowed types for stock movements
StockMovementType = Literal["IN", "OUT", "ADJUSTMENT"]

# Schema for a manual stock correction (positive adds, negative removes)
class StockAdjust(BaseModel):
    product_id: int
    qty: int = Field(alias="quantity_change")
    reason: Optional[str] = Field(default=None, max_length=200)

    model_config = ConfigDict(populate_by_name=True)

# Schema for returning stock movement details
class StockMovementResponse(BaseModel):
    id: int
    created_at: Optional[datetime] = None
    product_id: int
    product_name: str
    qty: int
    type: StockMovementType
    reason: Optional[str] = None
    order_id: Optional[int] = None
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    stock_after: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

# Paginated response for stock movement history
class StockMovementPage(BaseModel):
    items: List[StockMovementResponse]
    total: int
    page: int
    page_size: int

# Schema for a goods receipt or a write-off (quantity always positive)
class StockChange(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)
    reason: Optional[str] = Field(default=None, max_length=200)

# Schema for setting the absolute stock level after a stocktake
class StockLevel(BaseModel):
    stock_quantity: int = Field(ge=0)
