"""rp_notification REST API — in-app notification inbox.

/notifications/unread-count, /stats and /mark-all-read are declared before
/{notification_id} routes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.database import get_db_session
from src.rp_common.response import ApiResponse, ok
from src.rp_gateway.auth.dependencies import get_current_user
from src.rp_gateway.user.db_models import UserModel
from src.rp_notification.application.service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])

_service = NotificationService()


@router.get("")
async def list_notifications(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    unread_only: bool = Query(False),
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_notifications(db, str(current_user.id), unread_only, cursor, limit)
    return ok(request, data.model_dump())


@router.get("/unread-count")
async def unread_count(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.unread_count(db, str(current_user.id))
    return ok(request, data.model_dump())


@router.get("/stats")
async def notification_stats(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_stats(db, str(current_user.id))
    return ok(request, data.model_dump())


@router.put("/mark-all-read")
async def mark_all_read(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.mark_all_read(db, str(current_user.id))
    return ok(request, data.model_dump(), "All notifications marked as read")


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.mark_read(db, str(current_user.id), notification_id)
    return ok(request, data.model_dump(), "Notification marked as read")
