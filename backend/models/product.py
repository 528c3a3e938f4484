# backend/models/product.py
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Numeric, ForeignKey, DateTime, CheckConstraint, func
)
from sqlalchemy.orm import relationship
from database import Base

ZERO = Decimal("0.00")

# Model Product
# Reprezentuje pojedynczy produkt sklepu.
# Przechowuje cenę zakupu (do raportów zysku), cenę sprzedaży
# oraz stan magazynowy zmniejszany przy składaniu zamówień.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(200), nullable=False, index=True)
    slug = Column(String(220), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Ceny kontrolowane poprzez ograniczenia.
    cost_price = Column(Numeric(10, 2), CheckConstraint("cost_price >= 0"), nullable=False)
    selling_price = Column(Numeric(10, 2), nullable=False)

    # Dane magazynowe.
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True, index=True)

    # Opcjonalny URL zdjęcia produktu.
    image_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("selling_price >= cost_price", name="ck_products_selling_ge_cost"),
    )

    category = relationship("Category", back_populates="products")
    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan",
                            order_by="ProductVariant.id")
    ingredients = relationship("ProductIngredient", back_populates="product", cascade="all, delete-orphan",
                               order_by="ProductIngredient.id")

    @property
    def in_stock(self) -> bool:
        return bool(self.is_available) and (self.stock_quantity or 0) > 0

    @property
    def profit_amount(self) -> Decimal:
        return self.selling_price - self.cost_price

    @property
    def profit_margin(self) -> Decimal:
        # Markup over cost price, in percent
        if not self.cost_price or self.cost_price <= 0:
            return ZERO
        return ((self.selling_price - self.cost_price) / self.cost_price * 100).quantize(Decimal("0.01"))


# Size / flavour option of a product, priced as selling_price + price_adjustment
class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)   # e.g. "Size"
    value = Column(String(100), nullable=False)  # e.g. "Large"
    price_adjustment = Column(Numeric(10, 2), CheckConstraint("price_adjustment >= 0"),
                              nullable=False, default=ZERO)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="variants")

    @property
    def display_text(self) -> str:
        return f"{self.name}: {self.value}"

    def final_price(self, product: "Product" = None) -> Decimal:
        product = product or self.product
        return product.selling_price + (self.price_adjustment or ZERO)


# Ingredient listed on a food product
class ProductIngredient(Base):
    __tablename__ = "product_ingredients"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="ingredients")
