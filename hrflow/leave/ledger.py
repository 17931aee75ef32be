"""Leave balance ledger — signed adjustments of remaining days.

Rows are keyed by ``(employee_id, leave_type, year)`` and created on first
use with the configured default allowance. Adjustments are not bounded
below; overdrawing is allowed and shows as a negative ``remaining``.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.common.audit import create_audit_entry
from hrflow.common.constants import LeaveType
from hrflow.common.ids import AccountId, EmployeeId
from hrflow.config import settings
from hrflow.leave.models import LeaveBalance

logger = logging.getLogger(__name__)


def default_allowance(leave_type: LeaveType) -> Decimal:
    allowances = {
        LeaveType.annual: settings.ANNUAL_LEAVE_ALLOWANCE,
        LeaveType.casual: settings.CASUAL_LEAVE_ALLOWANCE,
        LeaveType.sick: settings.SICK_LEAVE_ALLOWANCE,
    }
    return Decimal(allowances[leave_type])


class LeaveBalanceLedger:
    """Async balance operations. Callers flush."""

    @staticmethod
    async def get_or_create(
        db: AsyncSession,
        employee_id: EmployeeId,
        leave_type: LeaveType,
        year: int,
    ) -> LeaveBalance:
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type == leave_type,
                LeaveBalance.year == year,
            )
        )
        balance = result.scalars().first()
        if balance is None:
            allowance = default_allowance(leave_type)
            balance = LeaveBalance(
                id=uuid.uuid4(),
                employee_id=employee_id,
                leave_type=leave_type,
                year=year,
                allowance=allowance,
                remaining=allowance,
            )
            db.add(balance)
            logger.debug(
                "Opened %s balance %s for employee %s (%s days)",
                leave_type.value, year, employee_id, allowance,
            )
        return balance

    @staticmethod
    async def adjust(
        db: AsyncSession,
        employee_id: EmployeeId,
        leave_type: LeaveType,
        delta_days: Union[int, Decimal],
        *,
        year: int,
        actor_id: Optional[AccountId] = None,
        reason: Optional[str] = None,
    ) -> LeaveBalance:
        """Add *delta_days* (negative to deduct) to the remaining balance."""
        balance = await LeaveBalanceLedger.get_or_create(db, employee_id, leave_type, year)
        old_remaining = Decimal(balance.remaining)
        balance.remaining = old_remaining + Decimal(delta_days)

        await create_audit_entry(
            db,
            action="balance_adjust",
            entity_type="leave_balance",
            entity_id=balance.id,
            actor_id=actor_id,
            old_values={"remaining": str(old_remaining)},
            new_values={
                "remaining": str(balance.remaining),
                "delta": str(delta_days),
                "leave_type": leave_type.value,
                "year": year,
                "reason": reason,
            },
        )
        if balance.remaining < 0:
            logger.info(
                "Employee %s overdrew %s leave for %s (remaining %s)",
                employee_id, leave_type.value, year, balance.remaining,
            )
        return balance

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        employee_id: EmployeeId,
        year: int,
    ) -> list[LeaveBalance]:
        """Return existing rows for *year*, creating missing categories."""
        balances = []
        for leave_type in LeaveType:
            balances.append(
                await LeaveBalanceLedger.get_or_create(db, employee_id, leave_type, year)
            )
        return balances
