"""Expenses Pydantic v2 schemas."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from hrflow.common.constants import ExpenseCategory
from hrflow.requests.schemas import ApprovalFields


class ExpenseRequestCreate(BaseModel):
    category: ExpenseCategory
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(
        None, min_length=3, max_length=3, description="ISO 4217 code; defaults to DEFAULT_CURRENCY",
    )
    description: str = Field(..., min_length=1, max_length=2000)
    receipt_url: Optional[str] = Field(None, max_length=500)


class ExpenseRequestOut(ApprovalFields):
    category: ExpenseCategory
    amount: Decimal
    currency: str
    description: str
    receipt_url: Optional[str] = None
