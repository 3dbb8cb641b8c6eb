"""
Inventory Module - Service Layer
==================================
The inventory ledger: single source of truth for per-product stock.

reserve() is a compare-and-decrement in one UPDATE statement, so concurrent
reservations on the same product serialize on the row and stock can never go
negative. release() is an increment guarded by an idempotency key.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from common.exceptions import InsufficientStockError, NotFoundError, ValidationError
from modules.catalog.models import Product
from modules.inventory.models import StockMovement, MovementReason

logger = logging.getLogger("atelier.inventory")


class InventoryLedger:

    # ==========================================
    # Reserve
    # ==========================================

    def reserve(
        self,
        db: Session,
        product_id: int,
        quantity: int,
        reason: str = MovementReason.CART_ADD,
        reference: Optional[str] = None,
    ) -> int:
        """
        Take `quantity` units out of stock.
        Returns the stock left after the reservation.
        Raises InsufficientStockError if quantity > current stock.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1.")

        updated = (
            db.query(Product)
            .filter(Product.id == product_id, Product.stock >= quantity)
            .update({Product.stock: Product.stock - quantity}, synchronize_session="fetch")
        )

        if not updated:
            product = db.query(Product).filter(Product.id == product_id).first()
            if not product:
                raise NotFoundError(f"Product #{product_id} not found.")
            logger.info(
                f"Reserve refused: product #{product_id} requested={quantity} available={product.stock}"
            )
            raise InsufficientStockError(product.name, product.stock)

        stock_after = self.available(db, product_id)
        db.add(StockMovement(
            product_id=product_id,
            delta=-quantity,
            stock_after=stock_after,
            reason=str(getattr(reason, "value", reason)),
            reference=reference,
        ))
        db.flush()
        logger.info(f"Reserved {quantity} of product #{product_id} ({reference or '-'}), left={stock_after}")
        return stock_after

    # ==========================================
    # Release
    # ==========================================

    def release(
        self,
        db: Session,
        product_id: int,
        quantity: int,
        reason: str = MovementReason.ORDER_RELEASE,
        reference: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> bool:
        """
        Put `quantity` units back into stock.
        Returns False (and changes nothing) if this idempotency key was already applied.
        """
        if quantity < 1:
            return False

        if idempotency_key:
            existing = db.query(StockMovement.id).filter(
                StockMovement.idempotency_key == idempotency_key,
            ).first()
            if existing:
                logger.info(f"Release skipped, already applied: {idempotency_key}")
                return False

        updated = (
            db.query(Product)
            .filter(Product.id == product_id)
            .update({Product.stock: Product.stock + quantity}, synchronize_session="fetch")
        )
        if not updated:
            raise NotFoundError(f"Product #{product_id} not found.")

        stock_after = self.available(db, product_id)
        db.add(StockMovement(
            product_id=product_id,
            delta=quantity,
            stock_after=stock_after,
            reason=str(getattr(reason, "value", reason)),
            reference=reference,
            idempotency_key=idempotency_key,
        ))
        db.flush()
        logger.info(f"Released {quantity} of product #{product_id} ({reference or '-'}), now={stock_after}")
        return True

    # ==========================================
    # Query
    # ==========================================

    def available(self, db: Session, product_id: int) -> int:
        stock = db.query(Product.stock).filter(Product.id == product_id).scalar()
        return stock or 0

    def movements(self, db: Session, product_id: int) -> List[StockMovement]:
        return (
            db.query(StockMovement)
            .filter(StockMovement.product_id == product_id)
            .order_by(StockMovement.id.asc())
            .all()
        )


# Singleton
inventory_ledger = InventoryLedger()
