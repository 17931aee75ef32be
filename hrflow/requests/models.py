"""Approval columns shared by leave and expense requests.

A request is created ``pending`` and decided exactly once; the decision
columns are written together and never again.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrflow.common.constants import TERMINAL_STATUSES, RequestStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalMixin:
    """Identity, ownership and decision columns of a workflow request."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False, index=True,
    )
    # Copied from the employee at submission; later transfers do not move it.
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"), nullable=False, index=True,
    )
    submitted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("accounts.id"),
    )

    # ── Decision ────────────────────────────────────────────────────
    status: Mapped[RequestStatus] = mapped_column(
        sa.Enum(RequestStatus, name="request_status", create_type=False),
        nullable=False,
        default=RequestStatus.pending,
        server_default="pending",
    )
    approver_note: Mapped[Optional[str]] = mapped_column(sa.Text)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("accounts.id"),
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    status_text: Mapped[Optional[str]] = mapped_column(sa.String(255))
    notified: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE"),
    )

    # ── Timestamps ──────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
