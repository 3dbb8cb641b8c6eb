"""
Cart Module - Service Layer
==============================
Per-identity carts: add/remove/update lines, selection, totals,
guest → user migration, and the abandoned-cart sweep.

Stock policy: adding to the cart reserves stock immediately. Removing a line
or lowering its quantity does NOT give stock back; only order cancellation
(and the optional expiry sweep) releases it.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from common.exceptions import InsufficientStockError, ValidationError
from common.helpers import now_utc, to_money
from config.settings import DEFAULT_SIZE
from modules.cart.models import Cart, CartItem
from modules.catalog.service import product_service
from modules.inventory.models import MovementReason
from modules.inventory.service import inventory_ledger

logger = logging.getLogger("atelier.cart")

MIGRATE_COPY = "copy"
MIGRATE_DISCARD = "discard"


def normalize_size(size: Optional[str]) -> str:
    size = (size or "").strip()
    return size or DEFAULT_SIZE


class CartService:

    # ==========================================
    # Lookup
    # ==========================================

    def get_cart(self, db: Session, owner_key: str, lock: bool = False) -> Optional[Cart]:
        q = db.query(Cart).filter(Cart.owner_key == owner_key)
        if lock:
            q = q.with_for_update()
        return q.first()

    def get_or_create_cart(self, db: Session, owner_key: str) -> Cart:
        """Get the owner's cart (row-locked for the rest of the transaction) or create it."""
        cart = self.get_cart(db, owner_key, lock=True)
        if not cart:
            cart = Cart(owner_key=owner_key, updated_at=now_utc())
            db.add(cart)
            db.flush()
        return cart

    def get_item(self, cart: Optional[Cart], product_id: int, size: Optional[str]) -> Optional[CartItem]:
        if not cart:
            return None
        size = normalize_size(size)
        for item in cart.items:
            if item.product_id == product_id and item.size == size:
                return item
        return None

    # ==========================================
    # Mutations
    # ==========================================

    def add_item(
        self,
        db: Session,
        owner_key: str,
        product_id: int,
        size: Optional[str] = None,
        quantity: int = 1,
    ) -> CartItem:
        """
        Add `quantity` of (product, size) to the cart, merging with an existing line.
        Reserves the stock right away; on InsufficientStockError nothing is changed.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1.")
        size = normalize_size(size)

        try:
            product = product_service.get_sellable(db, product_id)
            cart = self.get_or_create_cart(db, owner_key)
            inventory_ledger.reserve(
                db, product_id, quantity,
                reason=MovementReason.CART_ADD,
                reference=f"cart:{owner_key}",
            )
        except InsufficientStockError:
            db.rollback()
            raise

        item = self.get_item(cart, product_id, size)
        if item:
            item.quantity += quantity
            item.reserved_quantity = (item.reserved_quantity or 0) + quantity
        else:
            item = CartItem(
                product_id=product_id,
                size=size,
                quantity=quantity,
                unit_price=to_money(product.price),
                selected=True,
                reserved_quantity=quantity,
            )
            cart.items.append(item)

        self._touch(cart)
        db.flush()
        return item

    def remove_item(self, db: Session, owner_key: str, product_id: int, size: Optional[str]) -> bool:
        """Delete the line. Held stock is intentionally not released."""
        cart = self.get_cart(db, owner_key, lock=True)
        item = self.get_item(cart, product_id, size)
        if not item:
            return False
        cart.items.remove(item)
        self._touch(cart)
        db.flush()
        return True

    def update_quantity(
        self, db: Session, owner_key: str, product_id: int, size: Optional[str], new_quantity: int,
    ) -> Optional[CartItem]:
        """
        Replace the line's quantity. No-op below 1.
        The ledger is not consulted here; checkout tops up any shortfall.
        """
        if new_quantity < 1:
            return None
        cart = self.get_cart(db, owner_key, lock=True)
        item = self.get_item(cart, product_id, size)
        if not item:
            return None
        item.quantity = new_quantity
        self._touch(cart)
        db.flush()
        return item

    def toggle_selection(self, db: Session, owner_key: str, product_id: int, size: Optional[str]) -> Optional[CartItem]:
        cart = self.get_cart(db, owner_key, lock=True)
        item = self.get_item(cart, product_id, size)
        if not item:
            return None
        item.selected = not item.selected
        self._touch(cart)
        db.flush()
        return item

    def clear(self, db: Session, owner_key: str) -> int:
        """Remove all lines. Returns number of lines removed."""
        cart = self.get_cart(db, owner_key, lock=True)
        if not cart:
            return 0
        removed = len(cart.items)
        cart.items.clear()
        self._touch(cart)
        db.flush()
        return removed

    def remove_selected(self, db: Session, owner_key: str) -> int:
        cart = self.get_cart(db, owner_key, lock=True)
        if not cart:
            return 0
        return self.remove_lines(db, cart, self.selected_items(cart))

    def remove_lines(self, db: Session, cart: Cart, items: Iterable[CartItem]) -> int:
        ids = {it.id for it in items}
        keep = [it for it in cart.items if it.id not in ids]
        removed = len(cart.items) - len(keep)
        cart.items[:] = keep
        self._touch(cart)
        db.flush()
        return removed

    # ==========================================
    # Derived reads
    # ==========================================

    @staticmethod
    def selected_items(cart: Optional[Cart]) -> List[CartItem]:
        if not cart:
            return []
        return [it for it in cart.items if it.selected]

    @staticmethod
    def total(items: Iterable[CartItem], selected_only: bool = False) -> Decimal:
        return sum(
            (Decimal(it.unit_price) * it.quantity for it in items if it.selected or not selected_only),
            Decimal("0.00"),
        )

    @staticmethod
    def count(items: Iterable[CartItem], selected_only: bool = False) -> int:
        return sum(it.quantity for it in items if it.selected or not selected_only)

    def summary(self, db: Session, owner_key: str) -> dict:
        """Serialisable view of the cart. Does not create one."""
        cart = self.get_cart(db, owner_key)
        items = list(cart.items) if cart else []
        names = product_service.names_for(db, [it.product_id for it in items])

        return {
            "items": [
                {
                    "product_id": it.product_id,
                    "name": names.get(it.product_id, ""),
                    "size": it.size,
                    "quantity": it.quantity,
                    "unit_price": to_money(it.unit_price),
                    "line_total": to_money(it.line_total),
                    "selected": it.selected,
                }
                for it in items
            ],
            "total": to_money(self.total(items)),
            "selected_total": to_money(self.total(items, selected_only=True)),
            "count": self.count(items),
            "selected_count": self.count(items, selected_only=True),
        }

    # ==========================================
    # Guest → user migration
    # ==========================================

    def migrate(self, db: Session, from_key: str, to_key: str, mode: str = MIGRATE_COPY) -> int:
        """
        Move a guest cart into a user cart ("copy") or drop it ("discard").
        Stock does not move either way. Returns the number of guest lines handled.
        """
        if mode not in (MIGRATE_COPY, MIGRATE_DISCARD):
            raise ValidationError(f"Unknown migration mode: {mode}")
        if from_key == to_key:
            return 0

        source = self.get_cart(db, from_key, lock=True)
        if not source:
            return 0

        moved = len(source.items)
        if mode == MIGRATE_COPY and moved:
            target = self.get_or_create_cart(db, to_key)
            for src in source.items:
                existing = self.get_item(target, src.product_id, src.size)
                if existing:
                    existing.quantity += src.quantity
                    existing.reserved_quantity = (existing.reserved_quantity or 0) + (src.reserved_quantity or 0)
                else:
                    target.items.append(CartItem(
                        product_id=src.product_id,
                        size=src.size,
                        quantity=src.quantity,
                        unit_price=src.unit_price,
                        selected=src.selected,
                        reserved_quantity=src.reserved_quantity or 0,
                    ))
            self._touch(target)

        db.delete(source)
        db.flush()
        logger.info(f"Cart migration {from_key} -> {to_key} mode={mode} lines={moved}")
        return moved

    # ==========================================
    # Abandoned-cart sweep
    # ==========================================

    def sweep_abandoned(self, db: Session, older_than_hours: int) -> int:
        """
        Drop lines of carts idle for longer than `older_than_hours` and give their
        held stock back to the ledger. Returns number of lines swept.
        """
        if older_than_hours <= 0:
            return 0
        cutoff = now_utc() - timedelta(hours=older_than_hours)

        carts = (
            db.query(Cart)
            .filter(Cart.updated_at < cutoff)
            .with_for_update()
            .all()
        )

        swept = 0
        for cart in carts:
            for item in cart.items:
                if item.reserved_quantity:
                    inventory_ledger.release(
                        db, item.product_id, item.reserved_quantity,
                        reason=MovementReason.CART_EXPIRY,
                        reference=f"cart:{cart.owner_key}",
                    )
                swept += 1
            cart.items.clear()
        db.flush()
        return swept

    # ==========================================
    # Private helpers
    # ==========================================

    def _touch(self, cart: Cart):
        cart.updated_at = now_utc()


# Singleton
cart_service = CartService()
