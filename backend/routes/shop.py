# backend/routes/shop.py
from typing import Optional, List, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from database import get_db
import schemas.product as product_schemas
from services import catalog


class CategoryProducts(BaseModel):
    category: product_schemas.CategoryOut
    products: List[product_schemas.ProductOut]


router = APIRouter(
    prefix="/shop",
    tags=["Shop"]
)


# Public browsing, no login required
@router.get("/categories", response_model=List[product_schemas.CategoryOut])
def get_categories(db: Session = Depends(get_db)):
    return catalog.list_categories(db)


@router.get("/categories/{slug}", response_model=CategoryProducts)
def get_category(slug: str, db: Session = Depends(get_db)):
    category = catalog.get_category_by_slug(db, slug)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return {"category": category, "products": catalog.list_products_by_category_slug(db, slug)}


@router.get("/products", response_model=product_schemas.ProductListPage)
def list_products_for_shop(
    q: Optional[str] = Query(None, description="Search by name or description"),
    category: Optional[str] = Query(None, description="Category slug"),
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100),
    sort_by: Literal["name", "selling_price"] = "name",
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
):
    if q:
        products = catalog.search_products(db, q)
        products = [p for p in products if p.stock_quantity > 0]
    elif category:
        products = [p for p in catalog.list_products_by_category_slug(db, category) if p.stock_quantity > 0]
    else:
        products = catalog.list_available_products(db)

    if q and category:
        products = [p for p in products if p.category and p.category.slug == category]

    products.sort(key=lambda p: getattr(p, sort_by), reverse=(order == "desc"))

    total = len(products)
    items = products[(page - 1) * page_size: page * page_size]
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/products/{slug}", response_model=product_schemas.ProductOut)
def get_product(slug: str, db: Session = Depends(get_db)):
    product = catalog.get_product_by_slug(db, slug)
    if product is None or not product.is_available:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
