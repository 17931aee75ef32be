"""Expenses ORM models: ExpenseRequest.

SQLAlchemy 2.0 async-compatible models.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from hrflow.common.constants import ExpenseCategory
from hrflow.database import Base
from hrflow.requests.models import ApprovalMixin


class ExpenseRequest(ApprovalMixin, Base):
    """Employee expense reimbursement request."""

    __tablename__ = "expense_requests"
    __table_args__ = (
        sa.CheckConstraint("amount > 0", name="ck_expense_amount_positive"),
    )

    category: Mapped[ExpenseCategory] = mapped_column(
        sa.Enum(ExpenseCategory, name="expense_category", create_type=False),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(sa.String(3), nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    receipt_url: Mapped[Optional[str]] = mapped_column(sa.String(500))

    def __repr__(self) -> str:
        return f"<ExpenseRequest {self.category.value} {self.amount} {self.currency}>"
