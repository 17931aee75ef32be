"""Tests for the leave / expense request lifecycle.

Covers submission (ledger reservation, head notification), decisions
(terminal immutability, authorisation, requester notification) and the
HTTP endpoints wired on top.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from hrflow.common.constants import (
    Decision,
    ExpenseCategory,
    LeaveType,
    NotificationType,
    RequestKind,
    RequestStatus,
    UserRole,
)
from hrflow.common.exceptions import (
    ForbiddenException,
    InvariantViolationException,
    NotFoundException,
    UpstreamWriteException,
    ValidationException,
)
from hrflow.common.ids import AccountId, EmployeeId
from hrflow.common.pagination import PaginationParams
from hrflow.config import settings
from hrflow.expenses.schemas import ExpenseRequestCreate
from hrflow.leave.ledger import LeaveBalanceLedger
from hrflow.leave.models import LeaveRequest
from hrflow.leave.schemas import LeaveRequestCreate
from hrflow.notifications.models import Notification
from hrflow.requests.service import RequestLifecycleService
from tests.conftest import (
    TestSessionFactory,
    add_account,
    add_department,
    add_employee,
    bearer,
    break_flush,
    set_head,
)


# ── Seed helpers ────────────────────────────────────────────────────

async def _seed_org(db, *, head_has_account: bool = True):
    dept = await add_department(db, name="Engineering", code="ENG")
    head = await add_employee(
        db, dept, email="hana.head@example.com", first_name="Hana", last_name="Head",
    )
    await set_head(db, dept, head)
    emp = await add_employee(
        db, dept, email="eli.ng@example.com", first_name="Eli", last_name="Ng",
    )
    head_account = None
    if head_has_account:
        head_account = await add_account(
            db, email=head.email, role=UserRole.manager, display_name="Hana Head",
        )
    emp_account = await add_account(db, email=emp.email, display_name="Eli Ng")
    return SimpleNamespace(
        dept=dept, head=head, emp=emp, head_account=head_account, emp_account=emp_account,
    )


def _march_leave(**overrides) -> LeaveRequestCreate:
    data = dict(
        leave_type=LeaveType.annual,
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 3),
        reason="Family visit",
    )
    data.update(overrides)
    return LeaveRequestCreate(**data)


async def _notifications_for(db, account_id) -> list[Notification]:
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == account_id)
        .order_by(Notification.created_at)
    )
    return list(result.scalars().all())


async def _annual_remaining(db, employee_id) -> Decimal:
    balance = await LeaveBalanceLedger.get_or_create(
        db, EmployeeId(employee_id), LeaveType.annual, 2024,
    )
    return balance.remaining


# ═════════════════════════════════════════════════════════════════════
# Submission
# ═════════════════════════════════════════════════════════════════════


class TestSubmitLeave:

    async def test_three_day_leave_reserves_and_notifies_head(self, db):
        org = await _seed_org(db)

        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
            submitted_by=AccountId(org.emp_account.id),
        )

        assert request.total_days == 3
        assert request.status == RequestStatus.pending
        assert request.notified is False
        assert request.department_id == org.dept.id
        assert request.submitted_by == org.emp_account.id
        assert await _annual_remaining(db, org.emp.id) == Decimal("18")

        inbox = await _notifications_for(db, org.head_account.id)
        assert len(inbox) == 1
        assert inbox[0].type == NotificationType.leave_request
        assert inbox[0].request_id == request.id
        assert inbox[0].request_type == RequestKind.leave
        # Addressed to the account, never to the head's employee record.
        assert await _notifications_for(db, org.head.id) == []

    async def test_end_before_start_is_rejected(self, db):
        org = await _seed_org(db)

        with pytest.raises(ValidationException) as exc_info:
            await RequestLifecycleService.submit_leave(
                db, EmployeeId(org.emp.id),
                _march_leave(start_date=date(2024, 3, 5), end_date=date(2024, 3, 1)),
            )
        assert "end_date" in exc_info.value.errors

    async def test_long_sick_leave_needs_certificate(self, db):
        org = await _seed_org(db)
        payload = _march_leave(
            leave_type=LeaveType.sick,
            start_date=date(2024, 3, 1),
            end_date=date(2024, 3, 4),
        )

        with pytest.raises(ValidationException) as exc_info:
            await RequestLifecycleService.submit_leave(db, EmployeeId(org.emp.id), payload)
        assert "medical_certificate_url" in exc_info.value.errors

    async def test_long_sick_leave_with_certificate(self, db):
        org = await _seed_org(db)
        payload = _march_leave(
            leave_type=LeaveType.sick,
            start_date=date(2024, 3, 1),
            end_date=date(2024, 3, 4),
            medical_certificate_url="https://files.example.com/cert.pdf",
        )

        request = await RequestLifecycleService.submit_leave(db, EmployeeId(org.emp.id), payload)

        assert request.total_days == 4
        balance = await LeaveBalanceLedger.get_or_create(
            db, EmployeeId(org.emp.id), LeaveType.sick, 2024,
        )
        assert balance.remaining == Decimal(settings.SICK_LEAVE_ALLOWANCE) - 4

    async def test_short_sick_leave_needs_no_certificate(self, db):
        org = await _seed_org(db)
        payload = _march_leave(leave_type=LeaveType.sick)

        request = await RequestLifecycleService.submit_leave(db, EmployeeId(org.emp.id), payload)
        assert request.total_days == 3

    async def test_employee_without_department(self, db):
        loner = await add_employee(db, None, email="loner@example.com")

        with pytest.raises(ValidationException):
            await RequestLifecycleService.submit_leave(db, EmployeeId(loner.id), _march_leave())

    async def test_unknown_employee(self, db):
        with pytest.raises(NotFoundException):
            await RequestLifecycleService.submit_leave(db, EmployeeId(uuid.uuid4()), _march_leave())

    async def test_head_without_account_is_skipped(self, db, caplog):
        org = await _seed_org(db, head_has_account=False)

        with caplog.at_level("WARNING", logger="hrflow.requests.service"):
            request = await RequestLifecycleService.submit_leave(
                db, EmployeeId(org.emp.id), _march_leave(),
            )

        assert request.status == RequestStatus.pending
        assert (await db.execute(select(func.count()).select_from(Notification))).scalar() == 0
        assert any("has no account" in r.getMessage() for r in caplog.records)

    async def test_headless_department_is_skipped(self, db):
        dept = await add_department(db, name="Research", code="RES")
        emp = await add_employee(db, dept, email="solo@example.com")

        request = await RequestLifecycleService.submit_leave(db, EmployeeId(emp.id), _march_leave())

        assert request.status == RequestStatus.pending
        assert (await db.execute(select(func.count()).select_from(Notification))).scalar() == 0


class TestSubmitExpense:

    async def test_expense_notifies_head_with_amount(self, db):
        org = await _seed_org(db)
        payload = ExpenseRequestCreate(
            category=ExpenseCategory.travel,
            amount=Decimal("150"),
            currency="eur",
            description="Train to client site",
        )

        request = await RequestLifecycleService.submit_expense(db, EmployeeId(org.emp.id), payload)

        assert request.currency == "EUR"
        inbox = await _notifications_for(db, org.head_account.id)
        assert len(inbox) == 1
        assert inbox[0].type == NotificationType.expense_request
        assert "150.00 EUR" in inbox[0].message

    async def test_currency_defaults_from_settings(self, db):
        org = await _seed_org(db)
        payload = ExpenseRequestCreate(
            category=ExpenseCategory.meals, amount=Decimal("12.50"), description="Lunch",
        )

        request = await RequestLifecycleService.submit_expense(db, EmployeeId(org.emp.id), payload)

        assert request.currency == settings.DEFAULT_CURRENCY

    async def test_submit_dispatches_on_kind(self, db):
        org = await _seed_org(db)
        payload = ExpenseRequestCreate(
            category=ExpenseCategory.supplies, amount=Decimal("9.99"), description="Notebooks",
        )

        request_id = await RequestLifecycleService.submit(
            db, RequestKind.expense, EmployeeId(org.emp.id), payload,
        )

        request = await RequestLifecycleService.get_request(db, RequestKind.expense, request_id)
        assert request.category == ExpenseCategory.supplies


# ═════════════════════════════════════════════════════════════════════
# Decision
# ═════════════════════════════════════════════════════════════════════


class TestDecide:

    async def test_approval_with_note(self, db):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )

        decided = await RequestLifecycleService.decide(
            db, RequestKind.leave, request.id, Decision.approved,
            actor=org.head_account, note="Enjoy",
        )

        assert decided.status == RequestStatus.approved
        assert decided.approver_note == "Enjoy"
        assert decided.approved_by == org.head_account.id
        assert decided.approved_at is not None
        assert decided.status_text == "Approved by Hana Head"
        assert decided.notified is True

        inbox = await _notifications_for(db, org.emp_account.id)
        assert len(inbox) == 1
        assert inbox[0].type == NotificationType.leave_approved
        assert "2024-03-01 to 2024-03-03" in inbox[0].message
        assert "Enjoy" in inbox[0].message

    async def test_status_text_falls_back_to_email(self, db):
        org = await _seed_org(db)
        org.head_account.display_name = None
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )

        decided = await RequestLifecycleService.decide(
            db, RequestKind.leave, request.id, Decision.rejected, actor=org.head_account,
        )

        assert decided.status_text == "Rejected by hana.head@example.com"

    async def test_expense_rejection_message(self, db):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_expense(
            db, EmployeeId(org.emp.id),
            ExpenseRequestCreate(
                category=ExpenseCategory.equipment, amount=Decimal("250"),
                currency="USD", description="Monitor",
            ),
        )

        await RequestLifecycleService.decide(
            db, RequestKind.expense, request.id, Decision.rejected,
            actor=org.head_account, note="Missing receipt",
        )

        inbox = await _notifications_for(db, org.emp_account.id)
        assert len(inbox) == 1
        assert inbox[0].type == NotificationType.expense_rejected
        assert "250.00 USD" in inbox[0].message
        assert "Missing receipt" in inbox[0].message

    async def test_terminal_request_is_immutable(self, db):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )
        await RequestLifecycleService.decide(
            db, RequestKind.leave, request.id, Decision.approved,
            actor=org.head_account, note="Enjoy",
        )

        with pytest.raises(InvariantViolationException):
            await RequestLifecycleService.decide(
                db, RequestKind.leave, request.id, Decision.rejected,
                actor=org.head_account, note="Changed my mind",
            )

        assert request.status == RequestStatus.approved
        assert request.approver_note == "Enjoy"
        assert len(await _notifications_for(db, org.emp_account.id)) == 1

    async def test_requester_without_account(self, db):
        org = await _seed_org(db)
        orphan = await add_employee(db, org.dept, email="orphan@example.com")
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(orphan.id), _march_leave(),
        )

        with pytest.raises(NotFoundException):
            await RequestLifecycleService.decide(
                db, RequestKind.leave, request.id, Decision.approved, actor=org.head_account,
            )

        assert request.status == RequestStatus.pending
        assert request.approved_by is None

    async def test_store_failure_leaves_request_pending(self, db, monkeypatch):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )
        await db.commit()
        request_id, emp_account_id = request.id, org.emp_account.id
        break_flush(monkeypatch, db)

        with pytest.raises(UpstreamWriteException):
            await RequestLifecycleService.decide(
                db, RequestKind.leave, request_id, Decision.approved,
                actor=org.head_account, note="Enjoy",
            )

        async with TestSessionFactory() as fresh:
            stored = await fresh.get(LeaveRequest, request_id)
            assert stored.status == RequestStatus.pending
            assert stored.approved_by is None
            assert stored.notified is False
            assert await _notifications_for(fresh, emp_account_id) == []

    async def test_unknown_request(self, db):
        org = await _seed_org(db)
        with pytest.raises(NotFoundException):
            await RequestLifecycleService.decide(
                db, RequestKind.leave, uuid.uuid4(), Decision.approved, actor=org.head_account,
            )


class TestBalancePolicy:
    """The balance is reserved once at submission and never touched again."""

    async def test_approval_does_not_decrement_again(self, db):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )
        assert await _annual_remaining(db, org.emp.id) == Decimal("18")

        await RequestLifecycleService.decide(
            db, RequestKind.leave, request.id, Decision.approved, actor=org.head_account,
        )

        assert await _annual_remaining(db, org.emp.id) == Decimal("18")

    async def test_rejection_does_not_restore(self, db):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )

        await RequestLifecycleService.decide(
            db, RequestKind.leave, request.id, Decision.rejected, actor=org.head_account,
        )

        assert await _annual_remaining(db, org.emp.id) == Decimal("18")


class TestAuthorisation:

    async def test_plain_employee_cannot_decide(self, db):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )

        with pytest.raises(ForbiddenException):
            await RequestLifecycleService.decide(
                db, RequestKind.leave, request.id, Decision.approved, actor=org.emp_account,
            )
        assert request.status == RequestStatus.pending

    async def test_manager_of_other_department_cannot_decide(self, db):
        org = await _seed_org(db)
        other = await add_department(db, name="Sales", code="SAL")
        other_head = await add_employee(db, other, email="sales.head@example.com")
        await set_head(db, other, other_head)
        other_account = await add_account(db, email=other_head.email, role=UserRole.manager)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )

        with pytest.raises(ForbiddenException):
            await RequestLifecycleService.decide(
                db, RequestKind.leave, request.id, Decision.approved, actor=other_account,
            )

    async def test_hr_admin_can_decide_anything(self, db, hr_account):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )

        decided = await RequestLifecycleService.decide(
            db, RequestKind.leave, request.id, Decision.approved, actor=hr_account,
        )

        assert decided.status_text == "Approved by HR Desk"


class TestListings:

    async def test_newest_first(self, db):
        org = await _seed_org(db)
        first = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )
        second = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id),
            _march_leave(start_date=date(2024, 4, 1), end_date=date(2024, 4, 1)),
        )
        first.created_at = datetime.now(timezone.utc) - timedelta(days=1)
        await db.flush()

        rows, total = await RequestLifecycleService.list_for_employee(
            db, RequestKind.leave, EmployeeId(org.emp.id), PaginationParams(page=1, page_size=10),
        )

        assert total == 2
        assert [r.id for r in rows] == [second.id, first.id]

    async def test_department_listing_filters_status(self, db):
        org = await _seed_org(db)
        pending = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )
        decided = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id),
            _march_leave(start_date=date(2024, 5, 1), end_date=date(2024, 5, 2)),
        )
        await RequestLifecycleService.decide(
            db, RequestKind.leave, decided.id, Decision.approved, actor=org.head_account,
        )

        rows, total = await RequestLifecycleService.list_for_department(
            db, RequestKind.leave, org.dept.id, PaginationParams(page=1, page_size=10),
            status=RequestStatus.pending,
        )

        assert total == 1
        assert rows[0].id == pending.id


# ═════════════════════════════════════════════════════════════════════
# HTTP
# ═════════════════════════════════════════════════════════════════════


class TestRequestAPI:

    async def test_submit_approve_and_read_inbox(self, client, db):
        org = await _seed_org(db)
        emp_headers = await bearer(db, org.emp_account)
        head_headers = await bearer(db, org.head_account)
        await db.commit()

        resp = await client.post(
            "/api/v1/leave/requests",
            json={
                "leave_type": "annual",
                "start_date": "2024-03-01",
                "end_date": "2024-03-03",
            },
            headers=emp_headers,
        )
        assert resp.status_code == 201
        request_id = resp.json()["data"]["id"]
        assert resp.json()["data"]["total_days"] == 3

        resp = await client.post(
            f"/api/v1/requests/leave/{request_id}/decision",
            json={"decision": "approved", "note": "Enjoy"},
            headers=head_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "approved"
        assert resp.json()["message"] == "Approved by Hana Head"

        resp = await client.get("/api/v1/notifications", headers=emp_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["meta"]["unread"] == 1
        assert body["data"][0]["type"] == "leave_approved"
        assert "Enjoy" in body["data"][0]["message"]

        resp = await client.get("/api/v1/leave/balances/mine?year=2024", headers=emp_headers)
        annual = next(b for b in resp.json()["data"] if b["leave_type"] == "annual")
        assert Decimal(str(annual["remaining"])) == Decimal("18")

    async def test_second_decision_is_conflict(self, client, db):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )
        await RequestLifecycleService.decide(
            db, RequestKind.leave, request.id, Decision.rejected, actor=org.head_account,
        )
        head_headers = await bearer(db, org.head_account)
        await db.commit()

        resp = await client.post(
            f"/api/v1/requests/leave/{request.id}/decision",
            json={"decision": "approved"},
            headers=head_headers,
        )

        assert resp.status_code == 409
        assert resp.json()["type"].endswith("/invariant-violation")

    async def test_employee_role_cannot_decide(self, client, db):
        org = await _seed_org(db)
        request = await RequestLifecycleService.submit_leave(
            db, EmployeeId(org.emp.id), _march_leave(),
        )
        emp_headers = await bearer(db, org.emp_account)
        await db.commit()

        resp = await client.post(
            f"/api/v1/requests/leave/{request.id}/decision",
            json={"decision": "approved"},
            headers=emp_headers,
        )

        assert resp.status_code == 403

    async def test_hr_files_on_behalf(self, client, db, hr_account, hr_headers):
        org = await _seed_org(db)
        await db.commit()

        resp = await client.post(
            f"/api/v1/leave/requests/on-behalf/{org.emp.id}",
            json={
                "leave_type": "casual",
                "start_date": "2024-06-10",
                "end_date": "2024-06-11",
            },
            headers=hr_headers,
        )

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["employee_id"] == str(org.emp.id)
        assert data["submitted_by"] == str(hr_account.id)

    async def test_invalid_dates_are_422_problem(self, client, db):
        org = await _seed_org(db)
        emp_headers = await bearer(db, org.emp_account)
        await db.commit()

        resp = await client.post(
            "/api/v1/leave/requests",
            json={
                "leave_type": "annual",
                "start_date": "2024-03-05",
                "end_date": "2024-03-01",
            },
            headers=emp_headers,
        )

        assert resp.status_code == 422
        assert "end_date" in resp.json()["errors"]

    async def test_expense_flow(self, client, db):
        org = await _seed_org(db)
        emp_headers = await bearer(db, org.emp_account)
        head_headers = await bearer(db, org.head_account)
        await db.commit()

        resp = await client.post(
            "/api/v1/expenses/requests",
            json={"category": "training", "amount": "80.00", "description": "Course fee"},
            headers=emp_headers,
        )
        assert resp.status_code == 201
        request_id = resp.json()["data"]["id"]

        resp = await client.get("/api/v1/expenses/requests/department", headers=head_headers)
        assert resp.status_code == 200
        assert [r["id"] for r in resp.json()["data"]] == [request_id]

        resp = await client.get("/api/v1/notifications", headers=head_headers)
        assert resp.json()["data"][0]["type"] == "expense_request"

        resp = await client.get("/api/v1/expenses/requests/mine", headers=emp_headers)
        assert resp.json()["meta"]["total"] == 1
