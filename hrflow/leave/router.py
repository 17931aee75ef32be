"""Leave router — filing leave, listings, and balance ledger endpoints.

Routes:
    POST /requests                          — file leave for yourself
    POST /requests/on-behalf/{employee_id}  — HR files leave for an employee
    GET  /requests/mine                     — own requests
    GET  /requests/department               — requests in a department (head / HR)
    GET  /balances/mine                     — own balances for a year
    POST /balances/{employee_id}/adjust     — manual ledger adjustment (HR)
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.auth.dependencies import get_current_account, require_role
from hrflow.auth.models import Account
from hrflow.common.constants import RequestKind, RequestStatus, UserRole
from hrflow.common.ids import AccountId, EmployeeId
from hrflow.common.pagination import PaginationParams, build_meta
from hrflow.core_hr.service import EmployeeService
from hrflow.database import flush_or_raise, get_db
from hrflow.leave.ledger import LeaveBalanceLedger
from hrflow.leave.schemas import (
    BalanceAdjustRequest,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
)
from hrflow.requests.service import RequestLifecycleService

router = APIRouter(prefix="", tags=["leave"])


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", status_code=201)
async def file_leave(
    body: LeaveRequestCreate,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """File a leave request for the authenticated employee."""
    employee = await EmployeeService.for_account(db, account)
    request = await RequestLifecycleService.submit_leave(
        db, EmployeeId(employee.id), body, submitted_by=AccountId(account.id),
    )
    return {
        "data": LeaveRequestOut.model_validate(request).model_dump(mode="json"),
        "message": f"Leave request submitted ({request.total_days} day(s)).",
    }


# ── POST /requests/on-behalf/{employee_id} ──────────────────────────

@router.post("/requests/on-behalf/{employee_id}", status_code=201)
async def file_leave_on_behalf(
    employee_id: uuid.UUID,
    body: LeaveRequestCreate,
    account: Account = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    """HR files a leave request on behalf of an employee."""
    request = await RequestLifecycleService.submit_leave(
        db, EmployeeId(employee_id), body, submitted_by=AccountId(account.id),
    )
    return {
        "data": LeaveRequestOut.model_validate(request).model_dump(mode="json"),
        "message": "Leave request filed on behalf of employee.",
    }


# ── GET /requests/mine ──────────────────────────────────────────────

@router.get("/requests/mine")
async def my_leave_requests(
    status: Optional[RequestStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeService.for_account(db, account)
    rows, total = await RequestLifecycleService.list_for_employee(
        db, RequestKind.leave, EmployeeId(employee.id), pagination, status=status,
    )
    return {
        "data": [LeaveRequestOut.model_validate(r).model_dump(mode="json") for r in rows],
        "meta": build_meta(total, pagination.page, pagination.page_size).model_dump(),
    }


# ── GET /requests/department ────────────────────────────────────────

@router.get("/requests/department")
async def department_leave_requests(
    department_id: Optional[uuid.UUID] = Query(
        None, description="Defaults to the caller's own department",
    ),
    status: Optional[RequestStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    account: Account = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Leave requests of a department, for its head or HR."""
    if department_id is None:
        department_id = (await EmployeeService.for_account(db, account)).department_id
    await RequestLifecycleService.ensure_can_review(db, account, department_id)
    rows, total = await RequestLifecycleService.list_for_department(
        db, RequestKind.leave, department_id, pagination, status=status,
    )
    return {
        "data": [LeaveRequestOut.model_validate(r).model_dump(mode="json") for r in rows],
        "meta": build_meta(total, pagination.page, pagination.page_size).model_dump(),
    }


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


# ── GET /balances/mine ──────────────────────────────────────────────

@router.get("/balances/mine")
async def my_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """Remaining days per leave category (missing rows open at the default allowance)."""
    employee = await EmployeeService.for_account(db, account)
    balances = await LeaveBalanceLedger.get_balances(
        db, EmployeeId(employee.id), year or date.today().year,
    )
    await flush_or_raise(db, "leave balance initialisation")
    return {
        "data": [LeaveBalanceOut.model_validate(b).model_dump(mode="json") for b in balances],
    }


# ── POST /balances/{employee_id}/adjust ─────────────────────────────

@router.post("/balances/{employee_id}/adjust")
async def adjust_balance(
    employee_id: uuid.UUID,
    body: BalanceAdjustRequest,
    account: Account = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeService.get_employee(db, EmployeeId(employee_id))
    balance = await LeaveBalanceLedger.adjust(
        db,
        EmployeeId(employee_id),
        body.leave_type,
        body.delta_days,
        year=body.year or date.today().year,
        actor_id=AccountId(account.id),
        reason=body.reason,
    )
    await flush_or_raise(db, "leave balance adjustment")
    return {
        "data": LeaveBalanceOut.model_validate(balance).model_dump(mode="json"),
        "message": "Leave balance adjusted.",
    }
