# backend/models/cart.py
from decimal import Decimal
from sqlalchemy import Column, Integer, ForeignKey, DateTime, CheckConstraint, UniqueConstraint, Index, func
from sqlalchemy.orm import relationship
from database import Base

# Represents a single line (product + optional variant + quantity) in a user's cart
class CartItem(Base):
    __tablename__ = "cart_items" # Table name

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False) # Owner of the cart
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True)
    quantity = Column(Integer, CheckConstraint("quantity > 0 AND quantity <= 100"), nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now()) # Creation timestamp
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product") # Relationship to Product
    variant = relationship("ProductVariant") # Relationship to the chosen variant

    __table_args__ = (
        # One row per (user, product, variant); adding again increments quantity
        UniqueConstraint("user_id", "product_id", "variant_id", name="uq_cartitem_user_product_variant"),
        # NULLs are distinct in unique constraints, so the no-variant case needs its own index
        Index(
            "uq_cartitem_user_product_novariant", "user_id", "product_id",
            unique=True,
            sqlite_where=variant_id.is_(None),
            postgresql_where=variant_id.is_(None),
        ),
    )

    @property
    def unit_price(self) -> Decimal:
        # Current catalog price; frozen into OrderItem.unit_price at checkout
        if self.variant is None:
            return self.product.selling_price
        return self.variant.final_price(self.product)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity
