"""
Shared FastAPI dependencies for authentication/authorization.

This module is the identity gate: it turns a bearer JWT into a Principal
(id + role). The ride engine trusts the result and never looks at the token.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.api.security import decode_token

bearer_scheme = HTTPBearer(auto_error=False)


class PrincipalRole(str, enum.Enum):
    """Roles a token may carry."""
    rider = "rider"
    driver = "driver"


@dataclass(frozen=True)
class Principal:
    """Verified caller identity."""
    id: UUID
    role: PrincipalRole


def _unauthorized(detail: str) -> HTTPException:
    """Create a standardized 401 exception with WWW-Authenticate header."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
def get_current_token_payload(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """
    Return decoded JWT payload for the current request.

    Authentication: Bearer JWT access token.

    Raises:
        HTTPException(401): if token missing/invalid/expired.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing authentication token.")
    token = credentials.credentials
    try:
        payload = decode_token(token)
    except jwt.PyJWTError:
        raise _unauthorized("Invalid or expired token.")

    sub = payload.get("sub")
    if not sub:
        raise _unauthorized("Invalid token.")
    return payload


# PUBLIC_INTERFACE
def get_current_principal(payload: Dict[str, Any] = Depends(get_current_token_payload)) -> Principal:
    """
    Return the authenticated principal.

    Raises:
        HTTPException(401): if sub is not a UUID or role is unknown.
    """
    try:
        principal_id = UUID(str(payload.get("sub")))
        role = PrincipalRole(payload.get("role"))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token.")
    return Principal(id=principal_id, role=role)


def _require_role(principal: Principal, role: PrincipalRole) -> Principal:
    if principal.role != role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"{role.value.capitalize()} role required.",
        )
    return principal


# PUBLIC_INTERFACE
def require_rider(principal: Principal = Depends(get_current_principal)) -> Principal:
    """
    Ensure the current principal has role=rider.

    Raises:
        HTTPException(403): if principal is not a rider.
    """
    return _require_role(principal, PrincipalRole.rider)


# PUBLIC_INTERFACE
def require_driver(principal: Principal = Depends(get_current_principal)) -> Principal:
    """
    Ensure the current principal has role=driver.

    Raises:
        HTTPException(403): if principal is not a driver.
    """
    return _require_role(principal, PrincipalRole.driver)
