"""
Auth Module - Dependencies
===========================
FastAPI dependencies that turn the incoming request into an owner identity.
These are injected into route handlers via Depends().

Sessions are issued elsewhere; here we only read them:
  - auth_token cookie or "Authorization: Bearer <jwt>"  → user identity
  - guest_id cookie (minted on first visit)              → guest identity
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request, Response, Depends

from common.exceptions import AuthenticationError, AuthorizationError
from common.helpers import safe_int
from common.security import decode_token, new_guest_id, get_cookie_kwargs
from config.settings import GUEST_COOKIE, GUEST_COOKIE_MAX_AGE_DAYS


@dataclass(frozen=True)
class Identity:
    owner_key: str
    user_id: Optional[int] = None
    is_admin: bool = False

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @classmethod
    def for_user(cls, user_id: int, is_admin: bool = False) -> "Identity":
        return cls(owner_key=f"user:{user_id}", user_id=user_id, is_admin=is_admin)

    @classmethod
    def for_guest(cls, guest_id: str) -> "Identity":
        return cls(owner_key=f"guest:{guest_id}")


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def get_current_user(request: Request) -> Optional[Identity]:
    """
    Identify the current user from the auth_token cookie or a bearer header.
    Returns Identity or None.
    """
    token = _bearer_token(request) or request.cookies.get("auth_token")
    if not token:
        return None

    payload = decode_token(token)
    if not payload:
        return None

    user_id = safe_int(payload.get("sub"))
    if not user_id:
        return None

    return Identity.for_user(user_id, is_admin=bool(payload.get("is_admin")))


def get_identity(
    request: Request,
    response: Response,
    user: Optional[Identity] = Depends(get_current_user),
) -> Identity:
    """Logged-in user, or the guest behind the guest_id cookie (minted if missing)."""
    if user:
        return user

    guest_id = request.cookies.get(GUEST_COOKIE)
    if not guest_id or len(guest_id) > 64:
        guest_id = new_guest_id()
        response.set_cookie(
            GUEST_COOKIE, guest_id,
            **get_cookie_kwargs(max_age=GUEST_COOKIE_MAX_AGE_DAYS * 24 * 3600),
        )
    return Identity.for_guest(guest_id)


def get_guest_identity(request: Request) -> Optional[Identity]:
    """Guest identity from the cookie only (never minted). Used for cart claim on login."""
    guest_id = request.cookies.get(GUEST_COOKIE)
    if not guest_id or len(guest_id) > 64:
        return None
    return Identity.for_guest(guest_id)


def require_login(user: Optional[Identity] = Depends(get_current_user)) -> Identity:
    """Require an authenticated user. Raises 401 if not logged in."""
    if not user:
        raise AuthenticationError("login_required")
    return user


def require_admin(user: Optional[Identity] = Depends(get_current_user)) -> Identity:
    """Only allow admin users. 401 when anonymous, 403 when not an admin."""
    if not user:
        raise AuthenticationError("login_required")
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
    return user
