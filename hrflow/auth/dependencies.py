"""Auth dependencies — JWT validation, RBAC enforcement."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.auth.models import Account, UserSession
from hrflow.common.constants import UserRole
from hrflow.common.exceptions import ForbiddenException
from hrflow.config import settings
from hrflow.database import get_db

# Role hierarchy: each role implicitly includes lower roles
ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.system_admin: {UserRole.system_admin, UserRole.hr_admin, UserRole.manager, UserRole.employee},
    UserRole.hr_admin: {UserRole.hr_admin, UserRole.manager, UserRole.employee},
    UserRole.manager: {UserRole.manager, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


def has_role(role: UserRole, *allowed_roles: UserRole) -> bool:
    """True when *role* (expanded via the hierarchy) covers any allowed role."""
    effective_roles = ROLE_HIERARCHY.get(role, {role})
    return bool(effective_roles.intersection(allowed_roles))


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_account(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Account:
    """Validate JWT, verify session, return the authenticated Account."""
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

    # Verify session exists, not revoked, not expired
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == _hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise HTTPException(status_code=401, detail="Session invalid or expired.")

    account = await db.get(Account, uuid.UUID(payload["sub"]))
    if account is None or not account.is_active:
        raise HTTPException(status_code=401, detail="Account is inactive or not found.")

    # The stored role is authoritative; the token claim is only a hint.
    request.state.user_role = account.role
    return account


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. system_admin can access manager endpoints.
    """

    async def _check(
        account: Account = Depends(get_current_account),
    ) -> Account:
        if not has_role(account.role, *allowed_roles):
            raise ForbiddenException(
                detail=f"Role '{account.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return account

    return _check
