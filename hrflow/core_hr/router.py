"""Core HR router — employee and department endpoints, transfers, designation.

Routes:
    /employees/{id}               — Employee detail
    /employees/{id}/transfer      — Move an employee to another department (HR)
    /departments                  — List departments
    /departments/{id}             — Department detail (with headless flag)
    /departments/{id}/members     — Active members
    /departments/{id}/head        — Appoint head (HR)
    /departments/{id}/deputy      — Designate deputy (HR)
"""


import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.auth.dependencies import get_current_account, require_role
from hrflow.auth.models import Account
from hrflow.common.constants import UserRole
from hrflow.common.ids import AccountId, EmployeeId
from hrflow.common.rate_limit import limiter
from hrflow.core_hr.schemas import (
    DesignationRequest,
    EmployeeResponse,
    TransferRequest,
)
from hrflow.core_hr.service import DepartmentService, EmployeeService, TransferService
from hrflow.database import get_db


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

employees_router = APIRouter(prefix="", tags=["employees"])
departments_router = APIRouter(prefix="", tags=["departments"])

_require_hr = require_role(UserRole.hr_admin)


# ═════════════════════════════════════════════════════════════════════
# Employee Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /employees/{id} ─────────────────────────────────────────────

@employees_router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    employee = await EmployeeService.get_employee(db, EmployeeId(employee_id))
    return {
        "data": EmployeeResponse.model_validate(employee).model_dump(mode="json"),
        "message": "Employee retrieved successfully.",
    }


# ── POST /employees/{id}/transfer ───────────────────────────────────

@employees_router.post("/{employee_id}/transfer")
@limiter.limit("30/minute")
async def transfer_employee(
    request: Request,
    employee_id: uuid.UUID,
    body: TransferRequest,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(_require_hr),
):
    """Transfer an employee; a departing head is replaced by the deputy,
    or the department is left headless (reported in ``warnings``)."""
    result = await TransferService.apply_transfer(
        db,
        EmployeeId(employee_id),
        body.new_department_id,
        actor_id=AccountId(current_account.id),
    )
    return {
        "data": result.model_dump(mode="json"),
        "message": result.warnings[0] if result.warnings else "Employee transferred successfully.",
    }


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /departments ────────────────────────────────────────────────

@departments_router.get("")
async def list_departments(
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    """List all active departments with member counts."""
    departments = await DepartmentService.list_departments(db)
    return {
        "data": [dept.model_dump(mode="json") for dept in departments],
        "message": f"Found {len(departments)} department(s).",
    }


# ── GET /departments/{id} ───────────────────────────────────────────

@departments_router.get("/{department_id}")
async def get_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    dept = await DepartmentService.describe_department(db, department_id)
    return {
        "data": dept.model_dump(mode="json"),
        "message": (
            "Department has no head assigned."
            if dept.is_headless
            else "Department retrieved successfully."
        ),
    }


# ── GET /departments/{id}/members ───────────────────────────────────

@departments_router.get("/{department_id}/members")
async def list_department_members(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(get_current_account),
):
    await DepartmentService.get_department(db, department_id)
    members = await EmployeeService.list_members(db, department_id)
    return {
        "data": [
            EmployeeResponse.model_validate(emp).model_dump(mode="json")
            for emp in members
        ],
        "message": f"Found {len(members)} member(s) in department.",
    }


# ── PUT /departments/{id}/head ──────────────────────────────────────

@departments_router.put("/{department_id}/head")
async def assign_department_head(
    department_id: uuid.UUID,
    body: DesignationRequest,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(_require_hr),
):
    await DepartmentService.assign_head(
        db,
        department_id,
        EmployeeId(body.employee_id),
        actor_id=AccountId(current_account.id),
    )
    dept = await DepartmentService.describe_department(db, department_id)
    return {
        "data": dept.model_dump(mode="json"),
        "message": "Department head assigned.",
    }


# ── PUT /departments/{id}/deputy ────────────────────────────────────

@departments_router.put("/{department_id}/deputy")
async def assign_department_deputy(
    department_id: uuid.UUID,
    body: DesignationRequest,
    db: AsyncSession = Depends(get_db),
    current_account: Account = Depends(_require_hr),
):
    await DepartmentService.assign_deputy(
        db,
        department_id,
        EmployeeId(body.employee_id),
        actor_id=AccountId(current_account.id),
    )
    dept = await DepartmentService.describe_department(db, department_id)
    return {
        "data": dept.model_dump(mode="json"),
        "message": "Deputy manager designated.",
    }
