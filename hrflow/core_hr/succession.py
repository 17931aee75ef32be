"""Headship succession — what happens to a department when its head leaves.

The resolver works in two phases so callers can compose it into a larger
unit of work (see ``TransferService``):

  1. ``plan_departure`` performs every read and invariant check. It never
     mutates anything, so a failure here leaves no partial state.
  2. ``apply_departure`` mutates the already-loaded ORM objects in memory.
     The caller flushes the whole unit once.

Outcomes:
  - deputy designated  → deputy becomes head, deputy slot cleared
  - no deputy          → department becomes headless (warning, not an error)
  - not a head         → nothing to do
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.common.audit import create_audit_entry
from hrflow.common.constants import DepartmentRole, SuccessionAction
from hrflow.common.exceptions import (
    InvariantViolationException,
    NotFoundException,
    ValidationException,
)
from hrflow.common.ids import AccountId, EmployeeId
from hrflow.core_hr.models import Department, Employee
from hrflow.core_hr.schemas import SuccessionResult
from hrflow.database import flush_or_raise

logger = logging.getLogger(__name__)


class SuccessionPlan:
    """Everything ``apply_departure`` needs, loaded up front."""

    def __init__(
        self,
        departing: Employee,
        department: Optional[Department] = None,
        deputy: Optional[Employee] = None,
        deputy_slots: Optional[list[Department]] = None,
        inactive_deputy: Optional[Employee] = None,
    ) -> None:
        self.departing = departing
        self.department = department
        self.deputy = deputy
        self.deputy_slots = deputy_slots or []
        self.inactive_deputy = inactive_deputy

    @property
    def was_head(self) -> bool:
        return self.department is not None


class SuccessionResolver:
    """Async succession operations."""

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def departments_headed_by(
        db: AsyncSession,
        employee_id: EmployeeId,
    ) -> list[Department]:
        result = await db.execute(
            select(Department).where(Department.manager_id == employee_id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def plan_departure(
        db: AsyncSession,
        departing: Employee,
    ) -> SuccessionPlan:
        """Load the headed department (if any), its deputy, and any deputy
        slots the departing employee holds. Raises on broken invariants."""

        headed = await SuccessionResolver.departments_headed_by(
            db, EmployeeId(departing.id),
        )
        if len(headed) > 1:
            names = ", ".join(sorted(d.name for d in headed))
            raise InvariantViolationException(
                f"Employee {departing.id} is recorded as head of "
                f"{len(headed)} departments ({names})."
            )

        slots_result = await db.execute(
            select(Department).where(Department.deputy_manager_id == departing.id)
        )
        deputy_slots = list(slots_result.scalars().all())

        if not headed:
            return SuccessionPlan(departing, deputy_slots=deputy_slots)

        department = headed[0]
        if department.deputy_manager_id is None:
            return SuccessionPlan(departing, department, deputy_slots=deputy_slots)

        if department.deputy_manager_id == departing.id:
            raise InvariantViolationException(
                f"Department '{department.name}' lists the same employee as "
                f"head and deputy."
            )

        deputy = await db.get(Employee, department.deputy_manager_id)
        if deputy is None:
            raise InvariantViolationException(
                f"Deputy {department.deputy_manager_id} of department "
                f"'{department.name}' does not exist."
            )
        if deputy.department_id != department.id:
            raise InvariantViolationException(
                f"Deputy {deputy.id} is not a member of department "
                f"'{department.name}'."
            )
        if not deputy.is_active:
            # Cannot take over; the department falls back to headless.
            return SuccessionPlan(
                departing, department,
                deputy_slots=deputy_slots, inactive_deputy=deputy,
            )

        return SuccessionPlan(departing, department, deputy, deputy_slots)

    # ─────────────────────────────────────────────────────────────────
    # Writes (in memory; caller flushes)
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def apply_departure(plan: SuccessionPlan) -> SuccessionResult:
        departing = plan.departing
        vacated = []
        for slot in plan.deputy_slots:
            slot.deputy_manager_id = None
            vacated.append(slot.id)

        if not plan.was_head:
            departing.demote()
            return SuccessionResult(
                was_head=False,
                action=SuccessionAction.none,
                vacated_deputy_department_ids=vacated,
            )

        department = plan.department
        departing.demote()

        if plan.deputy is not None:
            deputy = plan.deputy
            department.manager_id = deputy.id
            department.deputy_manager_id = None
            deputy.department_role = DepartmentRole.head
            logger.info(
                "Deputy %s promoted to head of department %s (replacing %s)",
                deputy.id, department.id, departing.id,
            )
            return SuccessionResult(
                was_head=True,
                department_id=department.id,
                action=SuccessionAction.promoted_deputy,
                new_head_id=deputy.id,
                vacated_deputy_department_ids=vacated,
            )

        department.manager_id = None
        warning = f"Department '{department.name}' now has no head."
        if plan.inactive_deputy is not None:
            department.deputy_manager_id = None
            plan.inactive_deputy.demote()
            vacated.append(department.id)
            warning = (
                f"Department '{department.name}' now has no head; deputy "
                f"{plan.inactive_deputy.id} is inactive and was not promoted."
            )
        logger.warning(
            "Department %s is headless after departure of %s",
            department.id, departing.id,
        )
        return SuccessionResult(
            was_head=True,
            department_id=department.id,
            action=SuccessionAction.cleared_head,
            vacated_deputy_department_ids=vacated,
            warning=warning,
        )

    @staticmethod
    async def record(
        db: AsyncSession,
        result: SuccessionResult,
        departing_id: uuid.UUID,
        actor_id: Optional[AccountId],
    ) -> None:
        """Stage an audit entry for a succession that changed headship."""
        if not result.was_head:
            return
        await create_audit_entry(
            db,
            action="succession",
            entity_type="department",
            entity_id=result.department_id,
            actor_id=actor_id,
            old_values={"manager_id": str(departing_id)},
            new_values={
                "manager_id": str(result.new_head_id) if result.new_head_id else None,
                "action": result.action.value,
            },
        )

    # ─────────────────────────────────────────────────────────────────
    # Standalone entry point
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def resolve_departure(
        db: AsyncSession,
        employee_id: EmployeeId,
        *,
        actor_id: Optional[AccountId] = None,
    ) -> SuccessionResult:
        """Hand over headship before *employee_id* leaves their department.

        The departing employee always ends as a plain member of their current
        department; moving them elsewhere is the caller's job.
        """

        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        if employee.department_id is None:
            raise ValidationException(
                {"department_id": ["Employee is not assigned to a department."]}
            )

        plan = await SuccessionResolver.plan_departure(db, employee)
        result = SuccessionResolver.apply_departure(plan)
        await SuccessionResolver.record(db, result, employee.id, actor_id)
        await flush_or_raise(db, "headship succession")
        return result
