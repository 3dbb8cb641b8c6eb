"""
Order Module - Models
======================
Order with an immutable item snapshot, status / payment status,
and an audit log of every lifecycle change.
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Text, JSON,
    ForeignKey, DateTime, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PRODUCTION = "in_production"
    FITTING = "fitting"
    READY_FOR_DELIVERY = "ready_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    REJECTED = "rejected"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    FAILED = "failed"


STATUS_LABELS = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.IN_PRODUCTION: "In Production",
    OrderStatus.FITTING: "Fitting / Alteration",
    OrderStatus.READY_FOR_DELIVERY: "Ready for Delivery",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.REFUNDED: "Refunded",
    OrderStatus.REJECTED: "Rejected / Disputed",
}

PAYMENT_LABELS = {
    PaymentStatus.PENDING: "Pending",
    PaymentStatus.PAID: "Paid",
    PaymentStatus.CANCELLED: "Cancelled",
    PaymentStatus.FAILED: "Failed",
}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    owner_key = Column(String, nullable=False, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    total_price = Column(Numeric(12, 2), nullable=False)
    shipping_address = Column(JSON, nullable=False)
    status = Column(String, default=OrderStatus.PENDING.value, nullable=False, index=True)
    payment_status = Column(String, default=PaymentStatus.PENDING.value, nullable=False)
    expected_delivery_date = Column(DateTime(timezone=True), nullable=True)   # admin override only
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Stock bookkeeping
    stock_released = Column(Boolean, default=False, nullable=False)
    stock_epoch = Column(Integer, default=0, nullable=False)

    # Placement idempotency
    idempotency_key = Column(String, nullable=True)

    # Cancellation
    cancellation_reason = Column(String, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
    status_logs = relationship("OrderStatusLog", back_populates="order", cascade="all, delete-orphan", order_by="OrderStatusLog.id")

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="ck_order_total"),
        Index("ix_order_owner_idempotency", "owner_key", "idempotency_key"),
    )

    @property
    def status_label(self) -> str:
        try:
            return STATUS_LABELS[OrderStatus(self.status)]
        except ValueError:
            return self.status

    @property
    def payment_status_label(self) -> str:
        try:
            return PAYMENT_LABELS[PaymentStatus(self.payment_status)]
        except ValueError:
            return self.payment_status

    @property
    def item_count(self) -> int:
        return sum(it.quantity for it in self.items)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)

    # Snapshot at time of checkout
    product_name = Column(String, nullable=False)
    size = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_item_qty"),
    )


class OrderStatusLog(Base):
    __tablename__ = "order_status_logs"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(String, nullable=True)
    new_status = Column(String, nullable=False)
    old_payment_status = Column(String, nullable=True)
    new_payment_status = Column(String, nullable=False)
    changed_by = Column(String, nullable=False)      # "customer" | "admin:<id>" | "system"
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="status_logs")
