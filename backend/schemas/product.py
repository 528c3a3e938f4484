# backend/schemas/product.py
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---- Categories ----
class CategoryCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class CategoryOut(ORMBase):
    id: int
    name: str
    slug: str
    description: Optional[str] = None


# ---- Variants / ingredients ----
class VariantCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100, description="e.g. Size")
    value: str = Field(min_length=1, max_length=100, description="e.g. Large")
    price_adjustment: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)


class VariantUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    value: Optional[str] = Field(default=None, min_length=1, max_length=100)
    price_adjustment: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)


class VariantOut(ORMBase):
    id: int
    product_id: int
    name: str
    value: str
    price_adjustment: Decimal


class IngredientCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)


class IngredientOut(ORMBase):
    id: int
    product_id: int
    name: str


# ---- Products ----
# Shared base attributes for product entities
class ProductBase(ORMBase):
    category_id: int
    name: str = Field(min_length=2, max_length=200)
    description: Optional[str] = None
    cost_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    selling_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock_quantity: int = Field(default=0, ge=0)
    is_available: bool = True
    image_url: Optional[str] = None


# Schema for creating a new product, optionally with its variants and ingredients
class ProductCreate(ProductBase):
    variants: List[VariantCreate] = []
    ingredients: List[IngredientCreate] = []


# Schema for partial product updates
class ProductEditRequest(ORMBase):
    """Schema for PATCH requests - all fields optional."""
    category_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = None
    cost_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    selling_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_available: Optional[bool] = None
    image_url: Optional[str] = None


# Full product representation including ID
class ProductOut(ORMBase):
    id: int
    category_id: int
    name: str
    slug: str
    description: Optional[str] = None
    selling_price: Decimal
    stock_quantity: int
    is_available: bool
    image_url: Optional[str] = None
    variants: List[VariantOut] = []
    ingredients: List[IngredientOut] = []


# Admin view adds cost and margin
class ProductAdminOut(ProductOut):
    cost_price: Decimal
    profit_amount: Decimal
    profit_margin: Decimal


# Paginated response for product listings
class ProductListPage(ORMBase):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int
