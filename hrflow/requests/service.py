"""Request lifecycle — submission and decision of leave and expense requests.

State machine::

    pending ──approve──▶ approved
       └─────reject───▶ rejected

Terminal states have no exits. Leave balance is reserved once, at
submission; a decision never touches the ledger.

Uses:
  - ``LeaveBalanceLedger`` from hrflow.leave.ledger
  - notification builders from hrflow.notifications.service
  - ``resolve_account_id`` / ``get_account_by_email`` from hrflow.auth.service
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.auth.dependencies import has_role
from hrflow.auth.models import Account
from hrflow.auth.service import get_account_by_email, resolve_account_id
from hrflow.common.audit import create_audit_entry
from hrflow.common.constants import (
    Decision,
    LeaveType,
    RequestKind,
    RequestStatus,
    UserRole,
)
from hrflow.common.exceptions import (
    ForbiddenException,
    InvariantViolationException,
    NotFoundException,
    ValidationException,
)
from hrflow.common.ids import AccountId, EmployeeId
from hrflow.common.pagination import PaginationParams
from hrflow.config import settings
from hrflow.core_hr.models import Department, Employee
from hrflow.core_hr.service import EmployeeService
from hrflow.database import flush_or_raise
from hrflow.expenses.models import ExpenseRequest
from hrflow.expenses.schemas import ExpenseRequestCreate
from hrflow.leave.ledger import LeaveBalanceLedger
from hrflow.leave.models import LeaveRequest
from hrflow.leave.schemas import LeaveRequestCreate
from hrflow.notifications.service import (
    notify_request_decided,
    notify_request_submitted,
)

logger = logging.getLogger(__name__)

AnyRequest = Union[LeaveRequest, ExpenseRequest]

REQUEST_MODELS: dict[RequestKind, type] = {
    RequestKind.leave: LeaveRequest,
    RequestKind.expense: ExpenseRequest,
}


class RequestLifecycleService:
    """Async submit / decide operations for both request kinds."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _load_submitter(
        db: AsyncSession,
        employee_id: EmployeeId,
    ) -> Employee:
        employee = await EmployeeService.get_employee(db, employee_id)
        if employee.department_id is None:
            raise ValidationException(
                {"employee_id": ["Employee is not assigned to a department."]}
            )
        return employee

    @staticmethod
    async def _resolve_head_account(
        db: AsyncSession,
        department_id: uuid.UUID,
    ) -> Optional[AccountId]:
        """Account of the department head, or ``None`` (logged) when there
        is no head or the head has no account."""
        department = await db.get(Department, department_id)
        if department is None or department.manager_id is None:
            logger.warning(
                "Department %s has no head; submission notice skipped",
                department_id,
            )
            return None
        head = await db.get(Employee, department.manager_id)
        if head is None:
            logger.warning(
                "Head %s of department %s not found; submission notice skipped",
                department.manager_id, department_id,
            )
            return None
        account = await get_account_by_email(db, head.email)
        if account is None:
            logger.warning(
                "Head %s of department %s has no account; submission notice skipped",
                head.id, department_id,
            )
            return None
        return AccountId(account.id)

    @staticmethod
    async def ensure_can_review(
        db: AsyncSession,
        actor: Account,
        department_id: uuid.UUID,
    ) -> None:
        """HR and system admins review anything; a manager only the
        department they head."""
        if has_role(actor.role, UserRole.hr_admin):
            return
        if actor.role != UserRole.manager:
            raise ForbiddenException(
                f"Role '{actor.role.value}' may not review requests."
            )
        reviewer = await EmployeeService.find_by_email(db, actor.email)
        department = await db.get(Department, department_id)
        if (
            reviewer is None
            or department is None
            or department.manager_id != reviewer.id
        ):
            raise ForbiddenException(
                "Only the head of the request's department may review it."
            )

    @staticmethod
    async def _finish_submission(
        db: AsyncSession,
        kind: RequestKind,
        request: AnyRequest,
        employee: Employee,
        head_account_id: Optional[AccountId],
        submitted_by: Optional[AccountId],
    ) -> None:
        await create_audit_entry(
            db,
            action="submit",
            entity_type=f"{kind.value}_request",
            entity_id=request.id,
            actor_id=submitted_by,
            new_values={
                "employee_id": str(employee.id),
                "department_id": str(employee.department_id),
                "status": RequestStatus.pending.value,
            },
        )
        if head_account_id is not None:
            await notify_request_submitted(
                db, kind, request, head_account_id, employee.full_name,
            )
        await flush_or_raise(db, f"{kind.value} request submission")
        logger.info(
            "%s request %s submitted for employee %s",
            kind.value.capitalize(), request.id, employee.id,
        )

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_leave(
        db: AsyncSession,
        employee_id: EmployeeId,
        payload: LeaveRequestCreate,
        *,
        submitted_by: Optional[AccountId] = None,
    ) -> LeaveRequest:
        """File a leave request and reserve its days in the balance ledger."""

        employee = await RequestLifecycleService._load_submitter(db, employee_id)

        if payload.end_date < payload.start_date:
            raise ValidationException(
                {"end_date": ["end_date must not be before start_date."]}
            )
        duration = (payload.end_date - payload.start_date).days + 1

        threshold = settings.MEDICAL_CERTIFICATE_THRESHOLD_DAYS
        if (
            payload.leave_type == LeaveType.sick
            and duration > threshold
            and not payload.medical_certificate_url
        ):
            raise ValidationException(
                {"medical_certificate_url": [
                    f"Sick leave longer than {threshold} day(s) requires a medical certificate."
                ]}
            )

        head_account_id = await RequestLifecycleService._resolve_head_account(
            db, employee.department_id,
        )

        request = LeaveRequest(
            id=uuid.uuid4(),
            employee_id=employee.id,
            department_id=employee.department_id,
            submitted_by=submitted_by,
            leave_type=payload.leave_type,
            start_date=payload.start_date,
            end_date=payload.end_date,
            total_days=duration,
            reason=payload.reason,
            medical_certificate_url=payload.medical_certificate_url,
            status=RequestStatus.pending,
            notified=False,
        )
        db.add(request)

        # The only ledger write in a request's life.
        await LeaveBalanceLedger.adjust(
            db,
            EmployeeId(employee.id),
            payload.leave_type,
            -duration,
            year=payload.start_date.year,
            actor_id=submitted_by,
            reason=f"leave request {request.id}",
        )

        await RequestLifecycleService._finish_submission(
            db, RequestKind.leave, request, employee, head_account_id, submitted_by,
        )
        return request

    @staticmethod
    async def submit_expense(
        db: AsyncSession,
        employee_id: EmployeeId,
        payload: ExpenseRequestCreate,
        *,
        submitted_by: Optional[AccountId] = None,
    ) -> ExpenseRequest:
        employee = await RequestLifecycleService._load_submitter(db, employee_id)
        head_account_id = await RequestLifecycleService._resolve_head_account(
            db, employee.department_id,
        )

        request = ExpenseRequest(
            id=uuid.uuid4(),
            employee_id=employee.id,
            department_id=employee.department_id,
            submitted_by=submitted_by,
            category=payload.category,
            amount=payload.amount,
            currency=(payload.currency or settings.DEFAULT_CURRENCY).upper(),
            description=payload.description,
            receipt_url=payload.receipt_url,
            status=RequestStatus.pending,
            notified=False,
        )
        db.add(request)

        await RequestLifecycleService._finish_submission(
            db, RequestKind.expense, request, employee, head_account_id, submitted_by,
        )
        return request

    @staticmethod
    async def submit(
        db: AsyncSession,
        kind: RequestKind,
        employee_id: EmployeeId,
        payload: Union[LeaveRequestCreate, ExpenseRequestCreate],
        *,
        submitted_by: Optional[AccountId] = None,
    ) -> uuid.UUID:
        """Dispatch on *kind* and return the new request id."""
        if kind == RequestKind.leave:
            request = await RequestLifecycleService.submit_leave(
                db, employee_id, payload, submitted_by=submitted_by,
            )
        else:
            request = await RequestLifecycleService.submit_expense(
                db, employee_id, payload, submitted_by=submitted_by,
            )
        return request.id

    # ─────────────────────────────────────────────────────────────────
    # Decide
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        kind: RequestKind,
        request_id: uuid.UUID,
    ) -> AnyRequest:
        request = await db.get(REQUEST_MODELS[kind], request_id)
        if request is None:
            raise NotFoundException(f"{kind.value.capitalize()}Request", str(request_id))
        return request

    @staticmethod
    async def decide(
        db: AsyncSession,
        kind: RequestKind,
        request_id: uuid.UUID,
        decision: Decision,
        *,
        actor: Account,
        note: Optional[str] = None,
    ) -> AnyRequest:
        """Approve or reject a pending request and notify the requester.

        Every check runs before the first write; a request that is already
        approved or rejected is never overwritten.
        """

        request = await RequestLifecycleService.get_request(db, kind, request_id)
        await RequestLifecycleService.ensure_can_review(db, actor, request.department_id)

        if request.is_terminal:
            raise InvariantViolationException(
                f"{kind.value.capitalize()} request {request_id} is already "
                f"{request.status.value}."
            )

        employee = await EmployeeService.get_employee(db, EmployeeId(request.employee_id))
        requester_account_id = await resolve_account_id(db, employee.email)

        # ── Mutations (no reads below this line) ────────────────────
        verb = "Approved" if decision == Decision.approved else "Rejected"
        request.status = RequestStatus(decision.value)
        request.approver_note = note
        request.approved_by = actor.id
        request.approved_at = datetime.now(timezone.utc)
        request.status_text = f"{verb} by {actor.label}"
        request.notified = True

        await create_audit_entry(
            db,
            action=decision.value,
            entity_type=f"{kind.value}_request",
            entity_id=request.id,
            actor_id=actor.id,
            old_values={"status": RequestStatus.pending.value},
            new_values={"status": request.status.value, "note": note},
        )
        await notify_request_decided(
            db, kind, request, requester_account_id, decision, note,
        )
        await flush_or_raise(db, f"{kind.value} request decision")

        logger.info(
            "%s request %s %s by account %s",
            kind.value.capitalize(), request.id, decision.value, actor.id,
        )
        return request

    # ─────────────────────────────────────────────────────────────────
    # Listings
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _paginate(
        db: AsyncSession,
        query,
        pagination: PaginationParams,
    ) -> tuple[list[AnyRequest], int]:
        count_q = select(func.count()).select_from(query.order_by(None).subquery())
        total: int = (await db.execute(count_q)).scalar_one()
        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()
        return list(rows), total

    @staticmethod
    async def list_for_employee(
        db: AsyncSession,
        kind: RequestKind,
        employee_id: EmployeeId,
        pagination: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
    ) -> tuple[list[AnyRequest], int]:
        """Requests filed for *employee_id*, newest first."""
        model = REQUEST_MODELS[kind]
        query = (
            select(model)
            .where(model.employee_id == employee_id)
            .order_by(model.created_at.desc())
        )
        if status is not None:
            query = query.where(model.status == status)
        return await RequestLifecycleService._paginate(db, query, pagination)

    @staticmethod
    async def list_for_department(
        db: AsyncSession,
        kind: RequestKind,
        department_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        status: Optional[RequestStatus] = None,
    ) -> tuple[list[AnyRequest], int]:
        """Requests filed in *department_id*, newest first."""
        model = REQUEST_MODELS[kind]
        query = (
            select(model)
            .where(model.department_id == department_id)
            .order_by(model.created_at.desc())
        )
        if status is not None:
            query = query.where(model.status == status)
        return await RequestLifecycleService._paginate(db, query, pagination)
