"""Notification endpoints — own inbox and unread count."""


from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrflow.auth.dependencies import get_current_account
from hrflow.auth.models import Account
from hrflow.common.constants import NotificationType
from hrflow.common.ids import AccountId
from hrflow.common.pagination import PaginationParams
from hrflow.database import get_db
from hrflow.notifications.schemas import NotificationListResponse
from hrflow.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / ─────────────────────────────────────────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    type: Optional[NotificationType] = Query(
        default=None, alias="type", description="Filter by notification type"
    ),
    pagination: PaginationParams = Depends(),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """List notifications for the authenticated account (paginated)."""
    return await NotificationService.get_notifications(
        db,
        AccountId(account.id),
        pagination,
        is_read=is_read,
        notification_type=type,
    )


# ── GET /unread-count ──────────────────────────────────────────────

@router.get("/unread-count")
async def unread_count(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, AccountId(account.id))
    return {"data": {"count": count}}
