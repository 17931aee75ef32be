#!/usr/bin/env python3
"""Issue an API bearer token for an account (operator tooling).

Login flows live outside this service; operators use this script to mint a
session for an existing account, optionally creating the account first.

Usage:
    python scripts/issue_token.py --email hr@example.com
    python scripts/issue_token.py --email hr@example.com --create --role hr_admin --name "HR Desk"

Exit codes:
    0 = token printed on stdout
    1 = account not found (and --create not given)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from hrflow.auth.models import Account
from hrflow.auth.service import get_account_by_email, issue_session
from hrflow.common.constants import UserRole
from hrflow.database import async_session_factory, engine

logger = logging.getLogger("hrflow.scripts.issue_token")


async def _issue(email: str, create: bool, role: UserRole, name: str | None) -> int:
    async with async_session_factory() as db:
        account = await get_account_by_email(db, email)
        if account is None:
            if not create:
                logger.error("No active account for %s (pass --create to add one)", email)
                return 1
            account = Account(email=email.strip().lower(), display_name=name, role=role)
            db.add(account)
            await db.flush()
            logger.info("Created %s account %s", role.value, account.id)

        token = await issue_session(db, account, user_agent="scripts/issue_token.py")
        await db.commit()

    await engine.dispose()
    print(token)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Issue an hrflow API token")
    parser.add_argument("--email", required=True, help="Account e-mail")
    parser.add_argument("--create", action="store_true", help="Create the account if missing")
    parser.add_argument(
        "--role",
        choices=[r.value for r in UserRole],
        default=UserRole.employee.value,
        help="Role for a newly created account",
    )
    parser.add_argument("--name", default=None, help="Display name for a new account")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    return asyncio.run(_issue(args.email, args.create, UserRole(args.role), args.name))


if __name__ == "__main__":
    sys.exit(main())
