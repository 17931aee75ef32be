"""Notification service — inbox creation, listing and request message builders."""

from __future__ import annotations

import math
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.common.constants import Decision, NotificationType, RequestKind
from hrflow.common.ids import AccountId
from hrflow.common.pagination import PaginationParams
from hrflow.notifications.models import Notification
from hrflow.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def notify(
        db: AsyncSession,
        user_id: AccountId,
        type: NotificationType,
        title: str,
        message: str,
        *,
        request_type: Optional[RequestKind] = None,
        request_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Stage one inbox record for *user_id*.

        The caller owns the unit of work and flushes it together with the
        writes that triggered the notification.
        """
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            request_type=request_type,
            request_id=request_id,
        )
        db.add(notification)
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        user_id: AccountId,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for an account, newest first."""
        query = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        count_q = query.with_only_columns(func.count()).order_by(None)
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        total_pages = math.ceil(total / pagination.page_size) if total else 0

        # Unread count is always unfiltered (badge)
        unread = await NotificationService.get_unread_count(db, user_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(
                page=pagination.page,
                page_size=pagination.page_size,
                total=total,
                total_pages=total_pages,
                has_next=pagination.page < total_pages,
                has_prev=pagination.page > 1,
                unread=unread,
            ),
        )

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        user_id: AccountId,
    ) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Request message builders ────────────────────────────────────────
# Accept the ORM request object directly to avoid schema coupling.


def _describe_request(kind: RequestKind, request) -> str:
    if kind == RequestKind.leave:
        return f"{request.start_date.isoformat()} to {request.end_date.isoformat()}"
    return f"{request.amount:.2f} {request.currency}"


async def notify_request_submitted(
    db: AsyncSession,
    kind: RequestKind,
    request,  # LeaveRequest | ExpenseRequest
    head_account_id: AccountId,
    employee_name: str,
) -> Notification:
    """Tell the department head that a request awaits their decision."""
    if kind == RequestKind.leave:
        title = "New Leave Request"
        message = (
            f"{employee_name} requested {request.leave_type.value} leave from "
            f"{_describe_request(kind, request)} ({request.total_days} day(s))."
        )
    else:
        title = "New Expense Request"
        message = (
            f"{employee_name} submitted a {request.category.value} expense of "
            f"{_describe_request(kind, request)}."
        )
    return await NotificationService.notify(
        db,
        head_account_id,
        NotificationType(f"{kind.value}_request"),
        title,
        message,
        request_type=kind,
        request_id=request.id,
    )


async def notify_request_decided(
    db: AsyncSession,
    kind: RequestKind,
    request,  # LeaveRequest | ExpenseRequest
    requester_account_id: AccountId,
    decision: Decision,
    note: Optional[str] = None,
) -> Notification:
    """Tell the requester how their request was decided."""
    label = "Leave" if kind == RequestKind.leave else "Expense"
    message = (
        f"Your {kind.value} request ({_describe_request(kind, request)}) "
        f"has been {decision.value}."
    )
    if note:
        message += f" Note: {note}"
    return await NotificationService.notify(
        db,
        requester_account_id,
        NotificationType(f"{kind.value}_{decision.value}"),
        f"{label} Request {decision.value.capitalize()}",
        message,
        request_type=kind,
        request_id=request.id,
    )
