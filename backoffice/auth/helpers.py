"""JWT encode/decode and the mapping from token claims to a Principal."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from backoffice.config import settings
from backoffice.rbac.types import Principal
from backoffice.utils.exceptions import AuthenticationError


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT containing arbitrary `data`.

    Expected payload keys: sub (user id), role_id
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and verify a JWT. Raises 401 on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def principal_from_payload(payload: dict) -> Principal:
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Token has no subject")
    role_id = payload.get("role_id") or payload.get("role") or settings.rbac_default_role
    return Principal(id=str(user_id), role_id=role_id)


def get_current_principal(request: Request) -> Optional[Principal]:
    """Principal set by AuthPermissionMiddleware, or None for public routes."""
    return getattr(request.state, "principal", None)


def require_principal(request: Request) -> Principal:
    """FastAPI dependency — the authenticated caller, 401 otherwise."""
    principal = get_current_principal(request)
    if principal is None:
        raise AuthenticationError("User not authenticated")
    return principal
