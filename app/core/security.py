"""Bearer token verification and actor resolution."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import get_settings
from app.core.enums import RoleEnum

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=True)


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller as asserted by the identity provider."""

    id: UUID
    role: RoleEnum

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.ADMIN


def create_access_token(subject: str, role: RoleEnum | str, **claims: Any) -> str:
    """Create signed access token (used by tests and operational scripts)."""
    payload: dict[str, Any] = {
        "sub": subject,
        "type": "access",
        "role": str(role),
        "exp": datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes),
    }
    payload.update(claims)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate JWT token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc


def actor_from_claims(claims: dict[str, Any]) -> Actor:
    """Build actor from decoded token claims."""
    if claims.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")

    subject = claims.get("sub")
    role = claims.get("role")
    if not subject or not role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token claims are incomplete")

    try:
        return Actor(id=UUID(str(subject)), role=RoleEnum(str(role).lower()))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token claims are malformed",
        ) from exc


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Actor:
    """Resolve currently authenticated actor from bearer token."""
    return actor_from_claims(decode_token(credentials.credentials))


def require_roles(*roles: RoleEnum):
    """Dependency factory for role-based access."""

    async def _checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted for your role",
            )
        return actor

    return _checker
