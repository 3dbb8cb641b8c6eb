"""
Promise Atelier - Security Utilities
=====================================
JWT tokens, guest ids, and CSRF protection.

NOTE: Sessions are issued by the storefront's auth service; this module only
signs/verifies the shared-secret JWT it hands out (sub = user id).
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import Request, HTTPException
from jose import jwt, JWTError

from config.settings import (
    SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, CSRF_ENABLED,
)
from common.helpers import now_utc

logger = logging.getLogger("atelier.security")


# ==========================================
# JWT Tokens
# ==========================================

def create_token(data: dict) -> str:
    """Create JWT token. `sub` must be the user id as a string."""
    to_encode = data.copy()
    to_encode["exp"] = now_utc() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected token: {e}")
        return None


# ==========================================
# Guest ids
# ==========================================

def new_guest_id() -> str:
    """Random, URL-safe id for an anonymous shopper's cart."""
    return secrets.token_urlsafe(18)


# ==========================================
# Cookie Helpers
# ==========================================

def get_cookie_kwargs(max_age: int = ACCESS_TOKEN_EXPIRE_MINUTES * 60) -> dict:
    """Standard cookie settings."""
    from config.settings import COOKIE_SECURE, COOKIE_SAMESITE
    return dict(
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        max_age=max_age,
    )


# ==========================================
# CSRF
# ==========================================

def new_csrf_token() -> str:
    """Generate a new random CSRF token."""
    return secrets.token_urlsafe(32)


def csrf_check(request: Request, form_token: Optional[str] = None):
    """
    Verify CSRF token from cookie matches the one in header or form.
    Raises HTTPException(403) on mismatch.
    """
    if not CSRF_ENABLED:
        return

    cookie_token = request.cookies.get("csrf_token")
    header_token = request.headers.get("X-CSRF-Token")
    token = header_token or form_token

    if not cookie_token or not token or cookie_token != token:
        raise HTTPException(403, "CSRF token missing or invalid")
