"""
Catalog Module - Models
========================
Product: the catalog's view of a sellable item.
Stock lives here but is only ever changed through the inventory ledger.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, CheckConstraint,
)
from sqlalchemy.sql import func
from config.database import Base


# ==========================================
# 📦 Product
# ==========================================

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock"),
        CheckConstraint("price >= 0", name="ck_product_price"),
    )

    def __repr__(self):
        return f"<Product {self.id} {self.name} stock={self.stock}>"
