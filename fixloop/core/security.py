# fixloop/core/security.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from fixloop.core.config import get_settings
from fixloop.core.enums import UserRole
from fixloop.core.errors import Forbidden

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


class Actor(BaseModel):
    """Verified caller identity taken from the bearer token claims."""

    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @property
    def is_provider(self) -> bool:
        return self.role == UserRole.provider

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.customer

    def audit_ref(self) -> dict:
        return {"role": self.role.value, "id": self.user_id}


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_actor(token: str) -> Actor:
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise _unauthorized("Invalid token! Please login again!")

    user_id = claims.get("sub") or claims.get("id")
    role = claims.get("role")
    if not user_id or role not in {r.value for r in UserRole}:
        logger.warning("Rejected token with incomplete claims (role=%r)", role)
        raise _unauthorized("Token is missing a user id or a known role")

    return Actor(user_id=str(user_id), role=UserRole(role))


def create_access_token(user_id: str, role: UserRole | str, expires_minutes: int = 60) -> str:
    """Mint a token the way the external auth layer does. Used by tests and local tooling."""
    settings = get_settings()
    role_value = role.value if isinstance(role, UserRole) else role
    claims = {
        "sub": user_id,
        "role": role_value,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Optional[Actor]:
    if credentials is None:
        return None
    return decode_actor(credentials.credentials)


def get_current_actor(actor: Optional[Actor] = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise _unauthorized("Authentication required. Please login.")
    return actor


def get_current_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise Forbidden("Admin privileges required")
    return actor
