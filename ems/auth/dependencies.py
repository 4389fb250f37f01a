"""Auth dependencies — JWT validation, RBAC enforcement.

Tokens are issued elsewhere; this module only verifies them and turns the
claims into a :class:`Caller`.
"""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt

from ems.auth.schemas import Caller
from ems.common.constants import UserRole
from ems.common.exceptions import ForbiddenException
from ems.config import settings


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_caller(request: Request) -> Caller:
    """Validate the JWT and return the caller identity it carries."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    try:
        employee_id = uuid.UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    # Unknown roles degrade to the least-privileged one
    role_str = payload.get("role", UserRole.employee.value)
    try:
        role = UserRole(role_str)
    except ValueError:
        role = UserRole.employee

    return Caller(employee_id=employee_id, role=role)


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. admin can access manager endpoints.
    """

    async def _check(caller: Caller = Depends(get_current_caller)) -> Caller:
        if not caller.has_role(*allowed_roles):
            raise ForbiddenException(
                detail=f"Role '{caller.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return caller

    return _check
