"""Expenses router — filing expense requests and listings.

All endpoints require authentication. Decisions go through
``POST /requests/expense/{id}/decision``.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.auth.dependencies import get_current_account, require_role
from hrflow.auth.models import Account
from hrflow.common.constants import RequestKind, RequestStatus, UserRole
from hrflow.common.ids import AccountId, EmployeeId
from hrflow.common.pagination import PaginationParams, build_meta
from hrflow.core_hr.service import EmployeeService
from hrflow.database import get_db
from hrflow.expenses.schemas import ExpenseRequestCreate, ExpenseRequestOut
from hrflow.requests.service import RequestLifecycleService

router = APIRouter(prefix="", tags=["expenses"])


# ── POST /requests ───────────────────────────────────────────────────

@router.post("/requests", status_code=201)
async def file_expense(
    body: ExpenseRequestCreate,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """Submit a new expense request."""
    employee = await EmployeeService.for_account(db, account)
    request = await RequestLifecycleService.submit_expense(
        db, EmployeeId(employee.id), body, submitted_by=AccountId(account.id),
    )
    return {
        "data": ExpenseRequestOut.model_validate(request).model_dump(mode="json"),
        "message": "Expense request submitted.",
    }


# ── GET /requests/mine ───────────────────────────────────────────────

@router.get("/requests/mine")
async def my_expenses(
    status: Optional[RequestStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """List expense requests for the current user."""
    employee = await EmployeeService.for_account(db, account)
    rows, total = await RequestLifecycleService.list_for_employee(
        db, RequestKind.expense, EmployeeId(employee.id), pagination, status=status,
    )
    return {
        "data": [ExpenseRequestOut.model_validate(r).model_dump(mode="json") for r in rows],
        "meta": build_meta(total, pagination.page, pagination.page_size).model_dump(),
    }


# ── GET /requests/department ─────────────────────────────────────────

@router.get("/requests/department")
async def department_expenses(
    department_id: Optional[uuid.UUID] = Query(None),
    status: Optional[RequestStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    account: Account = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    if department_id is None:
        department_id = (await EmployeeService.for_account(db, account)).department_id
    await RequestLifecycleService.ensure_can_review(db, account, department_id)
    rows, total = await RequestLifecycleService.list_for_department(
        db, RequestKind.expense, department_id, pagination, status=status,
    )
    return {
        "data": [ExpenseRequestOut.model_validate(r).model_dump(mode="json") for r in rows],
        "meta": build_meta(total, pagination.page, pagination.page_size).model_dump(),
    }
