"""
Order Routes
==============
Customer-facing order API: checkout from the selected cart lines,
order history, order detail, and cancellation.

Endpoints:
  POST /api/orders                - place order (201, 200 on idempotent replay)
  GET  /api/orders                - my orders, newest first
  GET  /api/orders/{id}           - order detail
  POST /api/orders/{id}/cancel    - cancel (pending / confirmed only)
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Request, Response, Depends, Header, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.security import csrf_check
from modules.auth.deps import Identity, require_login
from modules.order.service import order_service, order_to_dict

router = APIRouter(prefix="/api/orders", tags=["orders"])


# ==========================================
# Schemas
# ==========================================

class ShippingAddress(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field("", max_length=100)
    postal_code: Optional[str] = Field("", max_length=20)
    country: Optional[str] = Field("", max_length=60)
    phone: Optional[str] = Field("", max_length=30)


class PlaceOrderRequest(BaseModel):
    shipping_address: ShippingAddress
    # Accepted for client compatibility; always recomputed server-side.
    total_price: Optional[Decimal] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field("", max_length=500)


# ==========================================
# ✅ Checkout
# ==========================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def place_order(
    data: PlaceOrderRequest,
    request: Request,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=200),
    db: Session = Depends(get_db),
    me: Identity = Depends(require_login),
):
    csrf_check(request)
    order, created = order_service.place_order(
        db, me, data.shipping_address.model_dump(), idempotency_key=idempotency_key,
    )
    db.commit()
    if not created:
        response.status_code = status.HTTP_200_OK
    return order_to_dict(order)


# ==========================================
# 📋 Orders
# ==========================================

@router.get("")
async def my_orders(
    db: Session = Depends(get_db),
    me: Identity = Depends(require_login),
):
    orders = order_service.get_customer_orders(db, me.owner_key)
    return [order_to_dict(o) for o in orders]


@router.get("/{order_id}")
async def order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    me: Identity = Depends(require_login),
):
    order = order_service.get_customer_order(db, order_id, me)
    return order_to_dict(order)


# ==========================================
# ❌ Cancel
# ==========================================

@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    request: Request,
    data: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    me: Identity = Depends(require_login),
):
    csrf_check(request)
    order = order_service.cancel_order(db, order_id, me, reason=(data.reason if data else "") or "")
    db.commit()
    return order_to_dict(order)
