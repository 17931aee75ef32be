"""Decision endpoint shared by leave and expense requests."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.auth.dependencies import require_role
from hrflow.auth.models import Account
from hrflow.common.constants import RequestKind, UserRole
from hrflow.database import get_db
from hrflow.expenses.schemas import ExpenseRequestOut
from hrflow.leave.schemas import LeaveRequestOut
from hrflow.requests.schemas import DecisionRequest
from hrflow.requests.service import RequestLifecycleService

router = APIRouter(prefix="", tags=["requests"])

_OUT_SCHEMAS = {
    RequestKind.leave: LeaveRequestOut,
    RequestKind.expense: ExpenseRequestOut,
}


# ── POST /{kind}/{request_id}/decision ──────────────────────────────

@router.post("/{kind}/{request_id}/decision")
async def decide_request(
    kind: RequestKind,
    request_id: uuid.UUID,
    body: DecisionRequest,
    account: Account = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject a pending request (department head or HR)."""
    request = await RequestLifecycleService.decide(
        db, kind, request_id, body.decision, actor=account, note=body.note,
    )
    return {
        "data": _OUT_SCHEMAS[kind].model_validate(request).model_dump(mode="json"),
        "message": request.status_text,
    }
