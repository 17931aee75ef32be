"""Core HR service layer — employee/department directories, headship
designation, and the transfer orchestrator.

Uses:
  - ``SuccessionResolver`` from hrflow.core_hr.succession
  - ``create_audit_entry`` from hrflow.common.audit
  - ``flush_or_raise`` from hrflow.database (one flush per unit of work)
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.common.audit import create_audit_entry
from hrflow.common.constants import DepartmentRole, SuccessionAction
from hrflow.common.exceptions import (
    AppException,
    InvariantViolationException,
    NotFoundException,
    ValidationException,
)
from hrflow.common.ids import AccountId, EmployeeId
from hrflow.core_hr.models import Department, Employee
from hrflow.core_hr.schemas import (
    DepartmentResponse,
    SuccessionResult,
    TransferResult,
)
from hrflow.core_hr.succession import SuccessionResolver
from hrflow.database import flush_or_raise

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Employee directory: lookups by id, e-mail and department."""

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: EmployeeId,
    ) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def find_by_email(
        db: AsyncSession,
        email: str,
    ) -> Optional[Employee]:
        result = await db.execute(
            select(Employee).where(
                func.lower(Employee.email) == email.strip().lower(),
                Employee.is_active.is_(True),
            )
        )
        return result.scalars().first()

    @staticmethod
    async def for_account(
        db: AsyncSession,
        account,  # hrflow.auth.models.Account
    ) -> Employee:
        """The employee record behind a login account (matched by e-mail)."""
        employee = await EmployeeService.find_by_email(db, account.email)
        if employee is None:
            raise NotFoundException("Employee", account.email)
        return employee

    @staticmethod
    async def list_members(
        db: AsyncSession,
        department_id: uuid.UUID,
    ) -> list[Employee]:
        result = await db.execute(
            select(Employee)
            .where(
                Employee.department_id == department_id,
                Employee.is_active.is_(True),
            )
            .order_by(Employee.first_name, Employee.last_name)
        )
        return list(result.scalars().all())


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


class DepartmentService:
    """Department directory and head/deputy designation."""

    @staticmethod
    async def get_department(
        db: AsyncSession,
        department_id: uuid.UUID,
    ) -> Department:
        department = await db.get(Department, department_id)
        if department is None:
            raise NotFoundException("Department", str(department_id))
        return department

    @staticmethod
    async def _names_by_id(
        db: AsyncSession,
        ids: set[uuid.UUID],
    ) -> dict[uuid.UUID, str]:
        if not ids:
            return {}
        result = await db.execute(
            select(Employee.id, Employee.first_name, Employee.last_name)
            .where(Employee.id.in_(ids))
        )
        return {
            row.id: f"{row.first_name} {row.last_name}".strip()
            for row in result.all()
        }

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = True,
    ) -> list[DepartmentResponse]:
        """Return departments with member counts and head/deputy names."""

        query = select(Department).order_by(Department.name)
        if is_active is not None:
            query = query.where(Department.is_active == is_active)
        departments = (await db.execute(query)).scalars().all()

        count_result = await db.execute(
            select(Employee.department_id, func.count(Employee.id))
            .where(Employee.is_active.is_(True))
            .group_by(Employee.department_id)
        )
        counts = {row[0]: row[1] for row in count_result.all() if row[0]}

        names = await DepartmentService._names_by_id(
            db,
            {d.manager_id for d in departments if d.manager_id}
            | {d.deputy_manager_id for d in departments if d.deputy_manager_id},
        )

        responses: list[DepartmentResponse] = []
        for dept in departments:
            resp = DepartmentResponse.model_validate(dept)
            resp.member_count = counts.get(dept.id, 0)
            resp.manager_name = names.get(dept.manager_id)
            resp.deputy_manager_name = names.get(dept.deputy_manager_id)
            responses.append(resp)
        return responses

    @staticmethod
    async def describe_department(
        db: AsyncSession,
        department_id: uuid.UUID,
    ) -> DepartmentResponse:
        dept = await DepartmentService.get_department(db, department_id)
        count = (
            await db.execute(
                select(func.count())
                .select_from(Employee)
                .where(
                    Employee.department_id == department_id,
                    Employee.is_active.is_(True),
                )
            )
        ).scalar() or 0
        names = await DepartmentService._names_by_id(
            db, {i for i in (dept.manager_id, dept.deputy_manager_id) if i},
        )

        resp = DepartmentResponse.model_validate(dept)
        resp.member_count = count
        resp.manager_name = names.get(dept.manager_id)
        resp.deputy_manager_name = names.get(dept.deputy_manager_id)
        return resp

    # ── Designation ─────────────────────────────────────────────────

    @staticmethod
    async def _load_appointee(
        db: AsyncSession,
        department: Department,
        employee_id: EmployeeId,
    ) -> Employee:
        employee = await EmployeeService.get_employee(db, employee_id)
        if employee.department_id != department.id or not employee.is_active:
            raise ValidationException(
                {"employee_id": [
                    f"Employee must be an active member of '{department.name}'."
                ]}
            )
        return employee

    @staticmethod
    async def assign_head(
        db: AsyncSession,
        department_id: uuid.UUID,
        employee_id: EmployeeId,
        *,
        actor_id: Optional[AccountId] = None,
    ) -> Department:
        """Make *employee_id* the head of *department_id*.

        The previous head (if any) becomes a plain member; appointing the
        current deputy also clears the deputy slot.
        """

        department = await DepartmentService.get_department(db, department_id)
        appointee = await DepartmentService._load_appointee(db, department, employee_id)
        if department.manager_id == appointee.id:
            return department

        headed = await SuccessionResolver.departments_headed_by(db, employee_id)
        if any(d.id != department.id for d in headed):
            raise InvariantViolationException(
                f"Employee {employee_id} already heads another department."
            )

        previous_id = department.manager_id
        if previous_id is not None:
            previous = await db.get(Employee, previous_id)
            if previous is not None and previous.department_id == department.id:
                previous.demote()

        if department.deputy_manager_id == appointee.id:
            department.deputy_manager_id = None
        department.manager_id = appointee.id
        appointee.department_role = DepartmentRole.head

        await create_audit_entry(
            db,
            action="assign_head",
            entity_type="department",
            entity_id=department.id,
            actor_id=actor_id,
            old_values={"manager_id": str(previous_id) if previous_id else None},
            new_values={"manager_id": str(appointee.id)},
        )
        await flush_or_raise(db, "department head assignment")
        logger.info("Employee %s appointed head of department %s", appointee.id, department.id)
        return department

    @staticmethod
    async def assign_deputy(
        db: AsyncSession,
        department_id: uuid.UUID,
        employee_id: EmployeeId,
        *,
        actor_id: Optional[AccountId] = None,
    ) -> Department:
        """Designate *employee_id* as the automatic successor of the head."""

        department = await DepartmentService.get_department(db, department_id)
        appointee = await DepartmentService._load_appointee(db, department, employee_id)
        if department.manager_id == appointee.id:
            raise ValidationException(
                {"employee_id": ["The department head cannot also be its deputy."]}
            )
        if department.deputy_manager_id == appointee.id:
            return department

        previous_id = department.deputy_manager_id
        if previous_id is not None:
            previous = await db.get(Employee, previous_id)
            if previous is not None and previous.department_role == DepartmentRole.deputy:
                previous.demote()

        department.deputy_manager_id = appointee.id
        appointee.department_role = DepartmentRole.deputy

        await create_audit_entry(
            db,
            action="assign_deputy",
            entity_type="department",
            entity_id=department.id,
            actor_id=actor_id,
            old_values={"deputy_manager_id": str(previous_id) if previous_id else None},
            new_values={"deputy_manager_id": str(appointee.id)},
        )
        await flush_or_raise(db, "deputy designation")
        logger.info("Employee %s designated deputy of department %s", appointee.id, department.id)
        return department


# ═════════════════════════════════════════════════════════════════════
# TransferService
# ═════════════════════════════════════════════════════════════════════


class TransferService:
    """Moves employees between departments, handing over headship first."""

    @staticmethod
    async def apply_transfer(
        db: AsyncSession,
        employee_id: EmployeeId,
        new_department_id: uuid.UUID,
        *,
        actor_id: Optional[AccountId] = None,
    ) -> TransferResult:
        """Transfer and raise ``AppException`` on any failure.

        All reads and checks run before the first mutation; the succession
        writes and the move itself are flushed as one batch.
        """

        employee = await EmployeeService.get_employee(db, employee_id)
        destination = await DepartmentService.get_department(db, new_department_id)
        if not destination.is_active:
            raise ValidationException(
                {"new_department_id": [f"Department '{destination.name}' is inactive."]}
            )

        source_id = employee.department_id
        if source_id == destination.id:
            # Guarded no-op: do not hand over headship for a move that moves nothing.
            return TransferResult(
                success=True,
                employee_id=employee.id,
                from_department_id=source_id,
                to_department_id=destination.id,
                succession=SuccessionResult(),
                warnings=[f"Employee is already in '{destination.name}'."],
            )

        plan = await SuccessionResolver.plan_departure(db, employee)

        # ── Mutations (no reads below this line) ────────────────────
        succession = SuccessionResolver.apply_departure(plan)
        old_role = employee.department_role
        employee.department_id = destination.id
        employee.demote()

        await SuccessionResolver.record(db, succession, employee.id, actor_id)
        await create_audit_entry(
            db,
            action="transfer",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={
                "department_id": str(source_id) if source_id else None,
                "department_role": old_role.value,
            },
            new_values={
                "department_id": str(destination.id),
                "department_role": DepartmentRole.member.value,
            },
        )
        await flush_or_raise(db, "employee transfer")

        logger.info(
            "Employee %s transferred %s -> %s (succession: %s)",
            employee.id, source_id, destination.id, succession.action.value,
        )
        warnings = [succession.warning] if succession.warning else []
        return TransferResult(
            success=True,
            employee_id=employee.id,
            from_department_id=source_id,
            to_department_id=destination.id,
            succession=succession,
            warnings=warnings,
        )

    @staticmethod
    async def transfer_employee(
        db: AsyncSession,
        employee_id: EmployeeId,
        new_department_id: uuid.UUID,
        *,
        actor_id: Optional[AccountId] = None,
    ) -> TransferResult:
        """Transfer and report failure as ``success=False`` with a reason.

        A headless source department is reported in ``warnings``; it is not
        a failure.
        """
        try:
            return await TransferService.apply_transfer(
                db, employee_id, new_department_id, actor_id=actor_id,
            )
        except AppException as exc:
            logger.warning(
                "Transfer of employee %s to %s failed: %s",
                employee_id, new_department_id, exc.detail,
            )
            return TransferResult(
                success=False,
                employee_id=employee_id,
                to_department_id=new_department_id,
                succession=SuccessionResult(action=SuccessionAction.none),
                reason=exc.detail,
                error_type=exc.error_type,
            )
