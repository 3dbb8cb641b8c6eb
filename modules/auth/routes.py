"""
Auth Module - Routes
======================
Helpers for API clients: CSRF cookie issuance and "who am I".
Login / token issuance lives in the storefront's auth service.
"""

from fastapi import APIRouter, Depends, Response

from common.security import new_csrf_token
from config.settings import COOKIE_SECURE, COOKIE_SAMESITE
from modules.auth.deps import Identity, get_identity

router = APIRouter(prefix="/api", tags=["auth"])


@router.get("/csrf")
async def issue_csrf(response: Response):
    """Set a fresh csrf_token cookie; send the same value back in X-CSRF-Token."""
    csrf = new_csrf_token()
    response.set_cookie("csrf_token", csrf, httponly=True, secure=COOKIE_SECURE, samesite=COOKIE_SAMESITE)
    return {"csrf_token": csrf}


@router.get("/session")
async def current_session(me: Identity = Depends(get_identity)):
    return {
        "is_guest": me.is_guest,
        "user_id": me.user_id,
        "is_admin": me.is_admin,
    }
