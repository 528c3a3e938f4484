# backend/models/order.py
import enum
from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, DateTime, Enum, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"


def _enum_values(enum_cls):
    # Persist the lowercase values ("out_for_delivery"), not the member names
    return [member.value for member in enum_cls]


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    order_number = Column(String(20), unique=True, nullable=False, index=True)
    status = Column(
        Enum(OrderStatus, name="order_status", native_enum=False, length=20, values_callable=_enum_values),
        nullable=False, default=OrderStatus.PENDING, index=True,
    )
    # Computed once from the cart snapshot, never recalculated
    total_amount = Column(Numeric(10, 2), CheckConstraint("total_amount > 0"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Cash on delivery: payment is settled when the order is delivered
    payment_method = Column(
        Enum(PaymentMethod, name="payment_method", native_enum=False, length=20, values_callable=_enum_values),
        nullable=False, default=PaymentMethod.CASH,
    )
    payment_status = Column(
        Enum(PaymentStatus, name="payment_status", native_enum=False, length=20, values_callable=_enum_values),
        nullable=False, default=PaymentStatus.PENDING,
    )

    # Delivery details
    delivery_address = Column(Text, nullable=True)
    delivery_phone = Column(String(16), nullable=True)
    notes = Column(Text, nullable=True)

    # Lifecycle timestamps
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")

    @property
    def is_cancellable(self) -> bool:
        return self.status in (OrderStatus.PENDING, OrderStatus.CONFIRMED)

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.DELIVERED


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, CheckConstraint("quantity > 0"), nullable=False)
    # Price at the time of ordering; later catalog changes do not touch it
    unit_price = Column(Numeric(10, 2), CheckConstraint("unit_price >= 0"), nullable=False)
    total_price = Column(Numeric(10, 2), CheckConstraint("total_price >= 0"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
    variant = relationship("ProductVariant")

    @property
    def profit(self):
        return (self.unit_price - self.product.cost_price) * self.quantity
