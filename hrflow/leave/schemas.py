"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Response / *Out    → response bodies (read)
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrflow.common.constants import LeaveType
from hrflow.requests.schemas import ApprovalFields


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Remaining days for one leave category in one year."""

    model_config = ConfigDict(from_attributes=True)

    leave_type: LeaveType
    year: int
    allowance: Decimal
    remaining: Decimal
    updated_at: Optional[datetime] = None


class BalanceAdjustRequest(BaseModel):
    """HR manual adjustment; positive credits, negative deducts."""

    leave_type: LeaveType
    delta_days: Decimal = Field(..., description="Signed number of days")
    year: Optional[int] = Field(None, ge=2000, le=2100)
    reason: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for filing a leave request.

    Date order and the medical-certificate rule are checked by the
    lifecycle service so that they surface as business validation errors.
    """

    leave_type: LeaveType
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000)
    medical_certificate_url: Optional[str] = Field(None, max_length=500)


class LeaveRequestOut(ApprovalFields):
    """Leave request as returned by the API."""

    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: int
    reason: Optional[str] = None
    medical_certificate_url: Optional[str] = None
