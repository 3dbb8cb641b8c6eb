"""
Order Module - Admin Routes
==============================
Order management for admin: list, detail with status history, status update.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Request, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.security import csrf_check
from common.exceptions import NotFoundError
from modules.auth.deps import Identity, require_admin
from modules.order.models import OrderStatus, PaymentStatus
from modules.order.service import order_service, order_to_dict, UNSET

router = APIRouter(prefix="/api/admin/orders", tags=["order-admin"])


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    payment_status: Optional[PaymentStatus] = None
    expected_delivery_date: Optional[date] = None
    note: Optional[str] = Field(None, max_length=500)


@router.get("")
async def admin_orders(
    status: Optional[str] = Query(None),
    sort: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    user: Identity = Depends(require_admin),
):
    orders = order_service.get_all_orders(db, status=status, sort=sort)
    return [order_to_dict(o) for o in orders]


@router.get("/{order_id}")
async def admin_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    user: Identity = Depends(require_admin),
):
    order = order_service.get_order(db, order_id)
    if not order:
        raise NotFoundError(f"Order #{order_id} not found.")
    return order_to_dict(order, include_history=True)


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: int,
    data: StatusUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: Identity = Depends(require_admin),
):
    """Set any status / payment status; optionally set or clear the delivery date override."""
    csrf_check(request)

    expected = UNSET
    if "expected_delivery_date" in data.model_fields_set:
        expected = None
        if data.expected_delivery_date is not None:
            expected = datetime.combine(data.expected_delivery_date, time.min, tzinfo=timezone.utc)

    order = order_service.update_status(
        db, order_id,
        status=data.status,
        payment_status=data.payment_status,
        expected_delivery_date=expected,
        changed_by=f"admin:{user.user_id}",
        note=data.note,
    )
    db.commit()
    return order_to_dict(order, include_history=True)
