"""
Order Module - Models
======================
Order snapshot with a single lifecycle status, line items frozen at checkout,
and an audit trail of every status transition.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Text,
    ForeignKey, DateTime, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base
from common.helpers import money, iso


class OrderStatus(str, enum.Enum):
    CREATED = "CREATED"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAID = "PAID"
    FULFILLING = "FULFILLING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, enum.Enum):
    STRIPE = "stripe"
    RAZORPAY = "razorpay"
    COD = "COD"


_SETTLED_STATES = {
    OrderStatus.PAID.value, OrderStatus.FULFILLING.value,
    OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value,
}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String, default=OrderStatus.CREATED.value, nullable=False, index=True)

    # Payment
    payment_method = Column(String, nullable=False)
    gateway_ref = Column(String, nullable=True, index=True)    # payment intent id / gateway order id
    payment_ref = Column(String, nullable=True)                # captured payment id
    payment_error = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refund_required = Column(Boolean, server_default=text("false"), default=False, nullable=False)
    stock_committed = Column(Boolean, server_default=text("false"), default=False, nullable=False)

    # Totals
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax = Column(Numeric(12, 2), default=0, nullable=False)
    shipping = Column(Numeric(12, 2), default=0, nullable=False)
    discount = Column(Numeric(12, 2), default=0, nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    shipping_address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    billing_address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)

    # Cancellation
    cancellation_reason = Column(String, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    shipping_address = relationship("Address", foreign_keys=[shipping_address_id])
    billing_address = relationship("Address", foreign_keys=[billing_address_id])
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    status_logs = relationship(
        "OrderStatusLog", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderStatusLog.id",
    )

    @property
    def is_cod(self) -> bool:
        return self.payment_method == PaymentMethod.COD.value

    @property
    def payment_status(self) -> str:
        """Derived from status; never stored separately."""
        s = self.status
        if s == OrderStatus.REFUNDED.value:
            return PaymentStatus.REFUNDED.value
        if s == OrderStatus.CANCELLED.value:
            return PaymentStatus.FAILED.value if self.payment_error else PaymentStatus.CANCELLED.value
        if self.is_cod:
            return PaymentStatus.PAID.value if s == OrderStatus.DELIVERED.value else PaymentStatus.PENDING.value
        if s in _SETTLED_STATES:
            return PaymentStatus.PAID.value
        return PaymentStatus.PENDING.value

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "orderNumber": self.order_number,
            "userId": self.user_id,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "paymentMethod": self.payment_method,
            "paymentIntentId": self.gateway_ref,
            "paymentRef": self.payment_ref,
            "refundRequired": self.refund_required,
            "subtotal": money(self.subtotal),
            "tax": money(self.tax),
            "shipping": money(self.shipping),
            "discount": money(self.discount),
            "total": money(self.total),
            "notes": self.notes,
            "paidAt": iso(self.paid_at),
            "cancelledAt": iso(self.cancelled_at),
            "cancellationReason": self.cancellation_reason,
            "createdAt": iso(self.created_at),
        }
        if include_items:
            data["items"] = [it.to_dict() for it in self.items]
            data["shippingAddress"] = self.shipping_address.to_dict() if self.shipping_address else None
        return data


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    quantity = Column(Integer, nullable=False)

    # Price snapshot at time of purchase
    price = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    def to_dict(self) -> dict:
        image = self.product.primary_image if self.product else None
        return {
            "id": self.id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": money(self.price),
            "total": money(self.total),
            "product": {
                "name": self.product.name if self.product else None,
                "slug": self.product.slug if self.product else None,
                "image": image.url if image else None,
            },
        }


class OrderStatusLog(Base):
    __tablename__ = "order_status_logs"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(String, nullable=True)
    new_status = Column(String, nullable=False)
    changed_by = Column(String, nullable=True)    # "user:12", "webhook:stripe", "system:scheduler"
    note = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="status_logs")
