"""Enums and constants for the HR workflow engine — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    hr_admin = "hr_admin"
    system_admin = "system_admin"


# ── Org structure ───────────────────────────────────────────────────

class DepartmentRole(str, enum.Enum):
    """Position of an employee inside their own department."""

    member = "member"
    deputy = "deputy"
    head = "head"


class SuccessionAction(str, enum.Enum):
    promoted_deputy = "promoted-deputy"
    cleared_head = "cleared-head"
    none = "none"


# ── Requests ────────────────────────────────────────────────────────

class RequestKind(str, enum.Enum):
    leave = "leave"
    expense = "expense"


class RequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class Decision(str, enum.Enum):
    approved = "approved"
    rejected = "rejected"


class LeaveType(str, enum.Enum):
    annual = "annual"
    casual = "casual"
    sick = "sick"


class ExpenseCategory(str, enum.Enum):
    travel = "travel"
    meals = "meals"
    supplies = "supplies"
    equipment = "equipment"
    training = "training"
    other = "other"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    leave_request = "leave_request"
    expense_request = "expense_request"
    leave_approved = "leave_approved"
    leave_rejected = "leave_rejected"
    expense_approved = "expense_approved"
    expense_rejected = "expense_rejected"


# ── Misc constants ──────────────────────────────────────────────────

TERMINAL_STATUSES = frozenset({RequestStatus.approved, RequestStatus.rejected})
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
