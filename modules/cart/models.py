"""
Cart Module - Models
=====================
One cart per owner identity ("user:<id>" or "guest:<token>"),
one line per (product, size), quantity constraints enforced in the DB.
"""

from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, ForeignKey, DateTime,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    owner_key = Column(String, unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "CartItem", back_populates="cart",
        cascade="all, delete-orphan", order_by="CartItem.id",
    )


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    size = Column(String, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)       # snapshot at add time
    selected = Column(Boolean, default=True, nullable=False)
    reserved_quantity = Column(Integer, default=0, nullable=False)  # units the ledger holds for this line

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "size", name="uq_cart_product_size"),
        CheckConstraint("quantity >= 1", name="ck_cart_qty"),
        CheckConstraint("reserved_quantity >= 0", name="ck_cart_reserved"),
    )

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity

    @property
    def unreserved_quantity(self) -> int:
        """Units the shopper wants that the ledger is not yet holding."""
        return max(0, self.quantity - (self.reserved_quantity or 0))
