"""rp_user REST API — profile, search, transactions, preferences, push token.

Literal paths are declared before /users/{user_id} so they are not
captured by the path parameter.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.database import get_db_session
from src.rp_common.response import ApiResponse, ok
from src.rp_gateway.auth.dependencies import get_current_user
from src.rp_gateway.user.db_models import UserModel
from src.rp_user.application.schemas import (
    NotificationPreferencesUpdate,
    PushTokenRequest,
    UpdateProfileRequest,
)
from src.rp_user.application.service import UserApplicationService

router = APIRouter(prefix="/users", tags=["users"])

_service = UserApplicationService()


@router.get("/profile")
async def get_profile(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_profile(db, str(current_user.id))
    return ok(request, data.model_dump())


@router.put("/profile")
async def update_profile(
    body: UpdateProfileRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_profile(db, str(current_user.id), body.display_name)
    return ok(request, data.model_dump(), "Profile updated")


@router.delete("/profile")
async def delete_account(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.soft_delete(db, str(current_user.id))
    return ok(request, None, "Account deleted")


@router.get("/search")
async def search_users(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    q: str = Query(..., min_length=1, max_length=64, description="Username or display name"),
    limit: int = Query(20, ge=1, le=50),
) -> ApiResponse:
    users = await _service.search_users(db, q, limit)
    return ok(request, [u.model_dump() for u in users])


@router.get("/transactions")
async def list_transactions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_transactions(db, str(current_user.id), cursor, limit)
    return ok(request, data.model_dump())


@router.get("/notification-preferences")
async def get_notification_preferences(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_settings(db, str(current_user.id))
    return ok(request, data.model_dump())


@router.put("/notification-preferences")
async def update_notification_preferences(
    body: NotificationPreferencesUpdate,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    changes = body.model_dump(exclude_none=True)
    data = await _service.update_settings(db, str(current_user.id), changes)
    return ok(request, data.model_dump(), "Preferences updated")


@router.post("/push-token")
async def register_push_token(
    body: PushTokenRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.register_push_token(db, str(current_user.id), body.token)
    return ok(request, None, "Push token registered")


@router.delete("/push-token")
async def clear_push_token(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.clear_push_token(db, str(current_user.id))
    return ok(request, None, "Push token removed")


@router.get("/{user_id}")
async def get_user(
    user_id: UUID,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_user(db, str(user_id))
    return ok(request, data.model_dump())


@router.get("/{user_id}/stats")
async def get_user_stats(
    user_id: UUID,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_stats(db, str(user_id))
    return ok(request, data.model_dump())
