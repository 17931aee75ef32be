"""Shared request-workflow schemas: decision payload and approval fields."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrflow.common.constants import Decision, RequestStatus


class DecisionRequest(BaseModel):
    """Approve or reject a pending request."""

    decision: Decision
    note: Optional[str] = Field(None, max_length=1000)


class ApprovalFields(BaseModel):
    """Columns every leave / expense response carries."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    department_id: uuid.UUID
    submitted_by: Optional[uuid.UUID] = None
    status: RequestStatus
    approver_note: Optional[str] = None
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    status_text: Optional[str] = None
    notified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
