"""Auth service — account directory lookups, JWT issuance, session lifecycle."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.auth.models import Account, UserSession
from hrflow.common.exceptions import NotFoundException
from hrflow.common.ids import AccountId
from hrflow.config import settings


# ── Account directory ───────────────────────────────────────────────

async def get_account_by_email(db: AsyncSession, email: str) -> Optional[Account]:
    """Return the active account registered under *email* (case-insensitive)."""
    result = await db.execute(
        select(Account).where(
            func.lower(Account.email) == email.strip().lower(),
            Account.is_active.is_(True),
        ),
    )
    return result.scalars().first()


async def resolve_account_id(db: AsyncSession, email: str) -> AccountId:
    """Bridge an employee e-mail to the account identifier, or raise 404."""
    account = await get_account_by_email(db, email)
    if account is None:
        raise NotFoundException(entity_type="Account", entity_id=email)
    return AccountId(account.id)


# ── JWT helpers ─────────────────────────────────────────────────────

def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(account: Account) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(account.id),
        "role": account.role.value,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


# ── Session management ──────────────────────────────────────────────

async def issue_session(
    db: AsyncSession,
    account: Account,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> str:
    """Create an access token for *account* and persist its session."""
    access_token, _ = create_access_token(account)

    session = UserSession(
        account_id=account.id,
        token_hash=_hash_token(access_token),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    )
    db.add(session)
    await db.flush()

    return access_token


async def revoke_session(db: AsyncSession, token: str) -> None:
    """Mark the session behind *token* as revoked."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == _hash_token(token)),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()
