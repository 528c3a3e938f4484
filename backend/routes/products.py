# backend/routes/products.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
import schemas.product as product_schemas
import schemas.stock as stock_schemas
from services import catalog
from utils.audit import write_log, client_ip
from utils.tokenJWT import require_admin

router = APIRouter(prefix="/admin", tags=["Products"])


def _log(db: Session, request: Request, user: User, action: str, resource: str, **meta):
    write_log(db, user_id=user.id, action=action, resource=resource, status="SUCCESS",
              ip=client_ip(request), meta=meta)


# =========================
# CATEGORIES
# =========================
@router.get("/categories", response_model=List[product_schemas.CategoryOut])
def list_categories(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return catalog.list_categories(db)


@router.post("/categories", response_model=product_schemas.CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(payload: product_schemas.CategoryCreate, request: Request,
                    db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    category = catalog.create_category(db, name=payload.name, description=payload.description)
    _log(db, request, current_user, "CATEGORY_CREATE", "categories", category_id=category.id, name=category.name)
    return category


@router.put("/categories/{category_id}", response_model=product_schemas.CategoryOut)
def update_category(category_id: int, payload: product_schemas.CategoryUpdate, request: Request,
                    db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    category = catalog.update_category(db, category_id, **payload.model_dump(exclude_unset=True))
    _log(db, request, current_user, "CATEGORY_UPDATE", "categories", category_id=category.id)
    return category


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(category_id: int, request: Request,
                    db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    catalog.delete_category(db, category_id)
    _log(db, request, current_user, "CATEGORY_DELETE", "categories", category_id=category_id)


# =========================
# PRODUCTS
# =========================
@router.get("/products", response_model=List[product_schemas.ProductAdminOut])
def list_products(
    q: Optional[str] = Query(None, description="Search by name or description"),
    category_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    products = catalog.list_products(db)
    if category_id is not None:
        products = [p for p in products if p.category_id == category_id]
    if q:
        needle = q.lower()
        products = [p for p in products if needle in p.name.lower() or needle in (p.description or "").lower()]
    return products


@router.get("/products/low-stock", response_model=List[product_schemas.ProductAdminOut])
def low_stock(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return catalog.low_stock_products(db)


@router.get("/products/out-of-stock", response_model=List[product_schemas.ProductAdminOut])
def out_of_stock(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return catalog.out_of_stock_products(db)


@router.get("/products/{product_id}", response_model=product_schemas.ProductAdminOut)
def get_product(product_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return catalog.get_product(db, product_id)


@router.post("/products", response_model=product_schemas.ProductAdminOut, status_code=status.HTTP_201_CREATED)
def create_product(payload: product_schemas.ProductCreate, request: Request,
                   db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    data = payload.model_dump()
    product = catalog.create_product(db, **data)
    _log(db, request, current_user, "PRODUCT_CREATE", "products", product_id=product.id, name=product.name)
    return catalog.get_product(db, product.id)


@router.patch("/products/{product_id}", response_model=product_schemas.ProductAdminOut)
def update_product(product_id: int, payload: product_schemas.ProductEditRequest, request: Request,
                   db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    changes = payload.model_dump(exclude_unset=True)
    product = catalog.update_product(db, product_id, **changes)
    _log(db, request, current_user, "PRODUCT_UPDATE", "products", product_id=product.id,
         fields=sorted(changes.keys()))
    return catalog.get_product(db, product.id)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: int, request: Request,
                   db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    catalog.delete_product(db, product_id)
    _log(db, request, current_user, "PRODUCT_DELETE", "products", product_id=product_id)



# Stocktake: set the absolute level, the difference is recorded as an adjustment
@router.put("/products/{product_id}/stock", response_model=product_schemas.ProductAdminOut)
def set_stock_level(product_id: int, payload: stock_schemas.StockLevel, request: Request,
                    db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    product = catalog.update_stock(db, product_id, payload.stock_quantity, user_id=current_user.id)
    _log(db, request, current_user, "STOCK_SET", "stock", product_id=product.id,
         stock_quantity=product.stock_quantity)
    return catalog.get_product(db, product.id)

# =========================
# VARIANTS / INGREDIENTS
# =========================
@router.post("/products/{product_id}/variants", response_model=product_schemas.VariantOut,
             status_code=status.HTTP_201_CREATED)
def create_variant(product_id: int, payload: product_schemas.VariantCreate, request: Request,
                   db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    variant = catalog.create_variant(db, product_id, **payload.model_dump())
    _log(db, request, current_user, "VARIANT_CREATE", "products", product_id=product_id, variant_id=variant.id)
    return variant


@router.put("/variants/{variant_id}", response_model=product_schemas.VariantOut)
def update_variant(variant_id: int, payload: product_schemas.VariantUpdate, request: Request,
                   db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    variant = catalog.update_variant(db, variant_id, **payload.model_dump(exclude_unset=True))
    _log(db, request, current_user, "VARIANT_UPDATE", "products", variant_id=variant.id)
    return variant


@router.delete("/variants/{variant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_variant(variant_id: int, request: Request,
                   db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    catalog.delete_variant(db, variant_id)
    _log(db, request, current_user, "VARIANT_DELETE", "products", variant_id=variant_id)


@router.post("/products/{product_id}/ingredients", response_model=product_schemas.IngredientOut,
             status_code=status.HTTP_201_CREATED)
def create_ingredient(product_id: int, payload: product_schemas.IngredientCreate, request: Request,
                      db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    ingredient = catalog.create_ingredient(db, product_id, name=payload.name)
    _log(db, request, current_user, "INGREDIENT_CREATE", "products", product_id=product_id,
         ingredient_id=ingredient.id)
    return ingredient


@router.put("/ingredients/{ingredient_id}", response_model=product_schemas.IngredientOut)
def update_ingredient(ingredient_id: int, payload: product_schemas.IngredientCreate, request: Request,
                      db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    ingredient = catalog.update_ingredient(db, ingredient_id, name=payload.name)
    _log(db, request, current_user, "INGREDIENT_UPDATE", "products", ingredient_id=ingredient.id)
    return ingredient


@router.delete("/ingredients/{ingredient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ingredient(ingredient_id: int, request: Request,
                      db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    catalog.delete_ingredient(db, ingredient_id)
    _log(db, request, current_user, "INGREDIENT_DELETE", "products", ingredient_id=ingredient_id)
