"""
Order Module - Service Layer
===============================
Checkout (cart → order), customer cancellation, admin status changes,
stock release / re-reservation, and order queries.

All methods only flush; the route commits. Any failure inside checkout or a
status change rolls the whole session back so no stock or half-built order
leaks out.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import asc, desc

from common.exceptions import (
    EmptySelectionError, InsufficientStockError, NotFoundError,
    OrderNotCancellableError, StockConflictError, ValidationError,
)
from common.helpers import as_utc, now_utc, stable_hash, to_money
from config import settings
from modules.cart.service import cart_service
from modules.catalog.service import product_service
from modules.inventory.models import MovementReason
from modules.inventory.service import inventory_ledger
from modules.order import lifecycle
from modules.order.delivery import effective_delivery, describe_delivery
from modules.order.models import Order, OrderItem, OrderStatus, OrderStatusLog, PaymentStatus

logger = logging.getLogger("atelier.order")

# Marker for "caller did not send expected_delivery_date" (None means "clear it").
UNSET = object()


class OrderService:

    # ==========================================
    # Checkout
    # ==========================================

    def place_order(
        self,
        db: Session,
        identity,
        shipping_address: dict,
        idempotency_key: Optional[str] = None,
    ) -> Tuple[Order, bool]:
        """
        Create an order from the caller's selected cart lines:
        1. Replay: same Idempotency-Key inside the window returns the earlier order
        2. Lock the cart, take the selected lines (EmptySelectionError if none)
        3. Re-validate stock: reserve any quantity not already held at add time
           (StockConflictError naming every short product; cart untouched)
        4. Total computed here from the line snapshots
        5. Snapshot items + address, status=pending, payment=pending
        6. Remove only the ordered lines from the cart

        Returns (order, created). created=False means an idempotent replay.
        """
        owner_key = identity.owner_key
        key = stable_hash(owner_key, idempotency_key) if idempotency_key else None

        if key:
            existing = self._find_replay(db, owner_key, key)
            if existing:
                logger.info(f"Order #{existing.id} replayed for {owner_key} (idempotency key)")
                return existing, False

        try:
            cart = cart_service.get_cart(db, owner_key, lock=True)
            selected = cart_service.selected_items(cart)
            if not selected:
                raise EmptySelectionError()

            names = product_service.names_for(db, [it.product_id for it in selected])

            conflicts = []
            for item in selected:
                shortfall = item.unreserved_quantity
                if not shortfall:
                    continue
                try:
                    inventory_ledger.reserve(
                        db, item.product_id, shortfall,
                        reason=MovementReason.CHECKOUT_TOPUP,
                        reference=f"checkout:{owner_key}",
                    )
                except InsufficientStockError as e:
                    conflicts.append({
                        "product_id": item.product_id,
                        "name": names.get(item.product_id, f"#{item.product_id}"),
                        "size": item.size,
                        "requested": item.quantity,
                        "available": (item.reserved_quantity or 0) + (e.available or 0),
                    })

            if conflicts:
                raise StockConflictError(conflicts)

            order = Order(
                owner_key=owner_key,
                user_id=identity.user_id,
                total_price=to_money(cart_service.total(selected)),
                shipping_address=dict(shipping_address),
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                expected_delivery_date=None,
                idempotency_key=key,
            )
            for item in selected:
                order.items.append(OrderItem(
                    product_id=item.product_id,
                    product_name=names.get(item.product_id, ""),
                    size=item.size,
                    quantity=item.quantity,
                    unit_price=to_money(item.unit_price),
                    line_total=to_money(item.line_total),
                ))
            db.add(order)
            db.flush()  # get order.id

            db.add(OrderStatusLog(
                order_id=order.id,
                old_status=None,
                new_status=order.status,
                old_payment_status=None,
                new_payment_status=order.payment_status,
                changed_by="customer",
                note="Order placed",
            ))

            cart_service.remove_lines(db, cart, selected)
            db.flush()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Order #{order.id} placed by {owner_key}: {len(order.items)} lines, total={order.total_price}")
        return order, True

    # ==========================================
    # Customer cancel
    # ==========================================

    def cancel_order(self, db: Session, order_id: int, identity, reason: str = "") -> Order:
        """
        Customer cancellation: only pending/confirmed orders.
        Cancelling an already-cancelled order is a no-op.
        """
        order = self._get_locked(db, order_id)
        if not order or order.owner_key != identity.owner_key:
            raise NotFoundError(f"Order #{order_id} not found.")

        if order.status == OrderStatus.CANCELLED.value:
            return order
        if not lifecycle.can_customer_cancel(order.status):
            raise OrderNotCancellableError(order.status)

        try:
            self._apply_status(db, order, OrderStatus.CANCELLED, None, changed_by="customer", note=reason or None)
            order.cancellation_reason = reason or "Cancelled by customer"
            db.flush()
        except Exception:
            db.rollback()
            raise
        return order

    # ==========================================
    # Admin status update
    # ==========================================

    def update_status(
        self,
        db: Session,
        order_id: int,
        status,
        payment_status=None,
        expected_delivery_date=UNSET,
        changed_by: str = "admin",
        note: Optional[str] = None,
    ) -> Order:
        """
        Admin-driven status change. Any status may be set unless strict mode is on.
        payment_status moves independently. expected_delivery_date:
        UNSET leaves the stored override alone, None clears it, a date must be after today.
        """
        target = lifecycle.parse_status(status)
        target_payment = lifecycle.parse_payment_status(payment_status) if payment_status is not None else None

        order = self._get_locked(db, order_id)
        if not order:
            raise NotFoundError(f"Order #{order_id} not found.")

        lifecycle.check_transition(order.status, target)

        if expected_delivery_date is not UNSET and expected_delivery_date is not None:
            if as_utc(expected_delivery_date).date() <= now_utc().date():
                raise ValidationError("Expected delivery date must be after today.")

        try:
            if expected_delivery_date is not UNSET:
                order.expected_delivery_date = expected_delivery_date
            self._apply_status(db, order, target, target_payment, changed_by=changed_by, note=note)
            db.flush()
        except Exception:
            db.rollback()
            raise
        return order

    # ==========================================
    # Query
    # ==========================================

    def get_order(self, db: Session, order_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id).first()

    def get_customer_order(self, db: Session, order_id: int, identity) -> Order:
        order = self.get_order(db, order_id)
        if not order or order.owner_key != identity.owner_key:
            raise NotFoundError(f"Order #{order_id} not found.")
        return order

    def get_customer_orders(self, db: Session, owner_key: str) -> List[Order]:
        return db.query(Order).filter(
            Order.owner_key == owner_key,
        ).order_by(desc(Order.created_at), desc(Order.id)).all()

    def get_all_orders(self, db: Session, status: str = None, sort: str = "desc") -> List[Order]:
        order_by = (asc(Order.created_at), asc(Order.id)) if sort == "asc" else (desc(Order.created_at), desc(Order.id))
        q = db.query(Order).order_by(*order_by)
        if status and status != "all":
            q = q.filter(Order.status == lifecycle.parse_status(status).value)
        return q.all()

    # ==========================================
    # Private Helpers
    # ==========================================

    def _get_locked(self, db: Session, order_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id).with_for_update().first()

    def _find_replay(self, db: Session, owner_key: str, key: str) -> Optional[Order]:
        since = now_utc() - timedelta(minutes=settings.ORDER_IDEMPOTENCY_WINDOW_MINUTES)
        return (
            db.query(Order)
            .filter(
                Order.owner_key == owner_key,
                Order.idempotency_key == key,
                Order.created_at >= since,
            )
            .order_by(desc(Order.id))
            .first()
        )

    def _apply_status(
        self,
        db: Session,
        order: Order,
        target: OrderStatus,
        target_payment: Optional[PaymentStatus],
        changed_by: str,
        note: Optional[str] = None,
    ) -> bool:
        """Move the order, settle stock, write the audit row. Returns False for a no-op."""
        old_status = order.status
        old_payment = order.payment_status
        new_payment = target_payment.value if target_payment else old_payment

        if target.value == old_status and new_payment == old_payment:
            return False

        if target.value != old_status:
            if lifecycle.releases_stock(target) and not order.stock_released:
                self._release_stock(db, order)
            elif not lifecycle.releases_stock(target) and order.stock_released:
                self._rereserve_stock(db, order)
            if target == OrderStatus.CANCELLED and not order.cancelled_at:
                order.cancelled_at = now_utc()

        order.status = target.value
        order.payment_status = new_payment
        db.add(OrderStatusLog(
            order_id=order.id,
            old_status=old_status,
            new_status=order.status,
            old_payment_status=old_payment,
            new_payment_status=new_payment,
            changed_by=changed_by,
            note=note,
        ))
        logger.info(
            f"Order #{order.id} {old_status}/{old_payment} -> {order.status}/{new_payment} by {changed_by}"
        )
        return True

    def _release_stock(self, db: Session, order: Order):
        """Give every item's quantity back to the ledger, once per stock epoch."""
        for item in order.items:
            inventory_ledger.release(
                db, item.product_id, item.quantity,
                reason=MovementReason.ORDER_RELEASE,
                reference=f"order:{order.id}",
                idempotency_key=f"order:{order.id}:epoch:{order.stock_epoch}:item:{item.id}",
            )
        order.stock_released = True

    def _rereserve_stock(self, db: Session, order: Order):
        """Take stock again for an order revived out of cancelled/refunded/rejected."""
        conflicts = []
        for item in order.items:
            try:
                inventory_ledger.reserve(
                    db, item.product_id, item.quantity,
                    reason=MovementReason.ORDER_RERESERVE,
                    reference=f"order:{order.id}",
                )
            except InsufficientStockError as e:
                conflicts.append({
                    "product_id": item.product_id,
                    "name": item.product_name or f"#{item.product_id}",
                    "size": item.size,
                    "requested": item.quantity,
                    "available": e.available or 0,
                })
        if conflicts:
            raise StockConflictError(conflicts)
        order.stock_released = False
        order.stock_epoch = (order.stock_epoch or 0) + 1


def order_to_dict(order: Order, now: Optional[datetime] = None, include_history: bool = False) -> dict:
    """Serialisable order view, with the effective (admin or estimated) delivery date."""
    now = now or now_utc()
    delivery_date, delivery_source = effective_delivery(order, now)
    data = {
        "id": order.id,
        "status": order.status,
        "status_label": order.status_label,
        "payment_status": order.payment_status,
        "payment_status_label": order.payment_status_label,
        "total_price": to_money(order.total_price),
        "shipping_address": order.shipping_address,
        "items": [
            {
                "product_id": it.product_id,
                "name": it.product_name,
                "size": it.size,
                "quantity": it.quantity,
                "unit_price": to_money(it.unit_price),
                "line_total": to_money(it.line_total),
            }
            for it in order.items
        ],
        "item_count": order.item_count,
        "expected_delivery_date": delivery_date.isoformat() if delivery_date else None,
        "expected_delivery_source": delivery_source,
        "expected_delivery_text": describe_delivery(delivery_date, now),
        "cancellable": lifecycle.can_customer_cancel(order.status),
        "created_at": as_utc(order.created_at).isoformat() if order.created_at else None,
        "cancelled_at": as_utc(order.cancelled_at).isoformat() if order.cancelled_at else None,
    }
    if include_history:
        data["user_id"] = order.user_id
        data["history"] = [
            {
                "old_status": log.old_status,
                "new_status": log.new_status,
                "old_payment_status": log.old_payment_status,
                "new_payment_status": log.new_payment_status,
                "changed_by": log.changed_by,
                "note": log.note,
                "created_at": as_utc(log.created_at).isoformat() if log.created_at else None,
            }
            for log in order.status_logs
        ]
    return data


# Singleton
order_service = OrderService()
