"""Core HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Request → request bodies (write)
  - *Response / *Result → response bodies (read)
"""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from hrflow.common.constants import DepartmentRole, SuccessionAction


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentResponse(BaseModel):
    """Full department representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    deputy_manager_id: Optional[uuid.UUID] = None
    is_headless: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Enriched fields (set by service layer)
    member_count: int = 0
    manager_name: Optional[str] = None
    deputy_manager_name: Optional[str] = None


class DesignationRequest(BaseModel):
    """Appoint an employee as department head or deputy."""

    employee_id: uuid.UUID


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class EmployeeResponse(BaseModel):
    """Employee record with derived legacy role flags."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: EmailStr
    job_title: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    department_role: DepartmentRole = DepartmentRole.member
    is_manager: bool = False
    is_department_head: bool = False
    is_deputy_manager: bool = False
    is_active: bool = True


# ═════════════════════════════════════════════════════════════════════
# Succession / Transfer
# ═════════════════════════════════════════════════════════════════════


class SuccessionResult(BaseModel):
    """Outcome of a head leaving their department."""

    was_head: bool = False
    department_id: Optional[uuid.UUID] = None
    action: SuccessionAction = SuccessionAction.none
    new_head_id: Optional[uuid.UUID] = None
    vacated_deputy_department_ids: list[uuid.UUID] = Field(default_factory=list)
    warning: Optional[str] = None


class TransferRequest(BaseModel):
    new_department_id: uuid.UUID


class TransferResult(BaseModel):
    """Outcome of ``transfer_employee``; ``success`` is False on any failure."""

    success: bool
    employee_id: uuid.UUID
    from_department_id: Optional[uuid.UUID] = None
    to_department_id: uuid.UUID
    succession: Optional[SuccessionResult] = None
    warnings: list[str] = Field(default_factory=list)
    reason: Optional[str] = None
    error_type: Optional[str] = None
