"""
Cart Routes
=============
JSON API for the shopper's cart (guest or logged-in) and the
guest → user claim after login.

Endpoints:
  GET    /api/cart                                  - cart summary
  POST   /api/cart/items                            - add (reserves stock, 409 if short)
  PATCH  /api/cart/items/{product_id}/{size}        - set quantity (<1 ignored)
  POST   /api/cart/items/{product_id}/{size}/toggle - flip selection
  DELETE /api/cart/items/{product_id}/{size}        - remove line
  DELETE /api/cart/selected                         - remove selected lines
  DELETE /api/cart                                  - clear
  POST   /api/cart/claim                            - move guest cart into user cart
"""

from typing import Literal, Optional

from fastapi import APIRouter, Request, Response, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import GUEST_COOKIE
from common.exceptions import NotFoundError
from common.security import csrf_check
from modules.auth.deps import Identity, get_identity, get_guest_identity, require_login
from modules.cart.service import cart_service, MIGRATE_COPY

router = APIRouter(prefix="/api/cart", tags=["cart"])


# ==========================================
# Schemas
# ==========================================

class AddItemRequest(BaseModel):
    product_id: int = Field(..., gt=0)
    size: Optional[str] = Field(None, max_length=40)
    quantity: int = Field(1, ge=1, le=100)


class UpdateQuantityRequest(BaseModel):
    quantity: int = Field(..., le=100)


class ClaimRequest(BaseModel):
    mode: Literal["copy", "discard"] = MIGRATE_COPY


# ==========================================
# 🛒 View Cart
# ==========================================

@router.get("")
async def view_cart(
    db: Session = Depends(get_db),
    me: Identity = Depends(get_identity),
):
    return cart_service.summary(db, me.owner_key)


# ==========================================
# ➕ Add Item
# ==========================================

@router.post("/items")
async def add_item(
    data: AddItemRequest,
    request: Request,
    db: Session = Depends(get_db),
    me: Identity = Depends(get_identity),
):
    csrf_check(request)
    cart_service.add_item(db, me.owner_key, data.product_id, data.size, data.quantity)
    db.commit()
    return cart_service.summary(db, me.owner_key)


# ==========================================
# ✏️ Update Line
# ==========================================

@router.patch("/items/{product_id}/{size}")
async def update_quantity(
    product_id: int,
    size: str,
    data: UpdateQuantityRequest,
    request: Request,
    db: Session = Depends(get_db),
    me: Identity = Depends(get_identity),
):
    csrf_check(request)
    if data.quantity >= 1:
        item = cart_service.update_quantity(db, me.owner_key, product_id, size, data.quantity)
        if not item:
            raise NotFoundError("Item is not in your cart.")
        db.commit()
    return cart_service.summary(db, me.owner_key)


@router.post("/items/{product_id}/{size}/toggle")
async def toggle_selection(
    product_id: int,
    size: str,
    request: Request,
    db: Session = Depends(get_db),
    me: Identity = Depends(get_identity),
):
    csrf_check(request)
    item = cart_service.toggle_selection(db, me.owner_key, product_id, size)
    if not item:
        raise NotFoundError("Item is not in your cart.")
    db.commit()
    return cart_service.summary(db, me.owner_key)


# ==========================================
# ➖ Remove
# ==========================================

@router.delete("/items/{product_id}/{size}")
async def remove_item(
    product_id: int,
    size: str,
    request: Request,
    db: Session = Depends(get_db),
    me: Identity = Depends(get_identity),
):
    csrf_check(request)
    if cart_service.remove_item(db, me.owner_key, product_id, size):
        db.commit()
    return cart_service.summary(db, me.owner_key)


@router.delete("/selected")
async def remove_selected(
    request: Request,
    db: Session = Depends(get_db),
    me: Identity = Depends(get_identity),
):
    csrf_check(request)
    cart_service.remove_selected(db, me.owner_key)
    db.commit()
    return cart_service.summary(db, me.owner_key)


@router.delete("")
async def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    me: Identity = Depends(get_identity),
):
    csrf_check(request)
    cart_service.clear(db, me.owner_key)
    db.commit()
    return cart_service.summary(db, me.owner_key)


# ==========================================
# 🔑 Claim guest cart after login
# ==========================================

@router.post("/claim")
async def claim_guest_cart(
    request: Request,
    response: Response,
    data: Optional[ClaimRequest] = None,
    db: Session = Depends(get_db),
    me: Identity = Depends(require_login),
):
    csrf_check(request)
    mode = data.mode if data else MIGRATE_COPY
    guest = get_guest_identity(request)
    moved = 0
    if guest:
        moved = cart_service.migrate(db, guest.owner_key, me.owner_key, mode=mode)
        db.commit()
        response.delete_cookie(GUEST_COOKIE)
    summary = cart_service.summary(db, me.owner_key)
    summary["claimed_lines"] = moved
    return summary
