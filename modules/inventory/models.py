"""
Inventory Module - Models
==========================
StockMovement: append-only audit trail of every change the ledger makes to
Product.stock. Release rows carry an idempotency key so a replayed release
never credits stock twice.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


# ==========================================
# Movement Reason
# ==========================================

class MovementReason(str, enum.Enum):
    CART_ADD = "cart_add"                  # held when a shopper adds to cart
    CHECKOUT_TOPUP = "checkout_topup"      # quantity raised in cart after the hold
    ORDER_RELEASE = "order_release"        # order cancelled / refunded / rejected
    ORDER_RERESERVE = "order_rereserve"    # admin revived a released order
    CART_EXPIRY = "cart_expiry"            # abandoned cart swept


# ==========================================
# Stock Movement
# ==========================================

class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    delta = Column(Integer, nullable=False)          # negative = reserve, positive = release
    stock_after = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    reference = Column(String, nullable=True)        # e.g. "order:12", "cart:user:7"
    idempotency_key = Column(String, unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship("Product")

    __table_args__ = (
        Index("ix_stock_movement_product_created", "product_id", "created_at"),
    )

    def __repr__(self):
        return f"<StockMovement product={self.product_id} delta={self.delta} reason={self.reason}>"
