"""Common module — shared utilities for the HR workflow engine."""

from hrflow.common.audit import AuditTrail, create_audit_entry
from hrflow.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    TERMINAL_STATUSES,
    Decision,
    DepartmentRole,
    ExpenseCategory,
    LeaveType,
    NotificationType,
    RequestKind,
    RequestStatus,
    SuccessionAction,
    UserRole,
)
from hrflow.common.exceptions import (
    AppException,
    ForbiddenException,
    InvariantViolationException,
    NotFoundException,
    UpstreamWriteException,
    ValidationException,
    register_exception_handlers,
)
from hrflow.common.ids import AccountId, EmployeeId
from hrflow.common.pagination import PaginationMeta, PaginationParams, build_meta

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "Decision",
    "DepartmentRole",
    "ExpenseCategory",
    "LeaveType",
    "NotificationType",
    "RequestKind",
    "RequestStatus",
    "SuccessionAction",
    "UserRole",
    "TERMINAL_STATUSES",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ForbiddenException",
    "InvariantViolationException",
    "NotFoundException",
    "UpstreamWriteException",
    "ValidationException",
    "register_exception_handlers",
    # Identifiers
    "AccountId",
    "EmployeeId",
    # Pagination
    "PaginationMeta",
    "PaginationParams",
    "build_meta",
]
