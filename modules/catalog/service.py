"""
Catalog Module - Service Layer
================================
Read-only product lookups backing the cart and the inventory ledger.
Catalog CRUD is owned by the merchandising back office.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from common.exceptions import NotFoundError
from modules.catalog.models import Product


class ProductService:

    def get_by_id(self, db: Session, product_id: int) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    def get_sellable(self, db: Session, product_id: int) -> Product:
        """Product that can be added to a cart. Raises NotFoundError otherwise."""
        product = self.get_by_id(db, product_id)
        if not product or not product.is_active:
            raise NotFoundError(f"Product #{product_id} not found.")
        return product

    def names_for(self, db: Session, product_ids: List[int]) -> dict:
        """Batch {product_id: name} lookup."""
        if not product_ids:
            return {}
        rows = db.query(Product.id, Product.name).filter(Product.id.in_(product_ids)).all()
        return {pid: name for pid, name in rows}


# Singleton
product_service = ProductService()
