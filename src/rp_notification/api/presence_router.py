"""Presence API — clients report where they are in the app."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from src.rp_common.response import ApiResponse, ok
from src.rp_gateway.auth.dependencies import get_current_user
from src.rp_gateway.user.db_models import UserModel
from src.rp_notification.application.presence_service import PresenceService
from src.rp_notification.application.schemas import PresenceResponse, PresenceUpdateRequest

router = APIRouter(prefix="/presence", tags=["presence"])

_presence = PresenceService()


@router.put("")
async def update_presence(
    body: PresenceUpdateRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    info = await _presence.update(str(current_user.id), body.state, body.screen, body.chat_id)
    return ok(request, PresenceResponse.from_domain(info).model_dump(), "Presence updated")


@router.post("/heartbeat")
async def heartbeat(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    extended = await _presence.heartbeat(str(current_user.id))
    return ok(request, {"extended": extended})


@router.get("/me")
async def my_presence(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    info = await _presence.get(str(current_user.id))
    return ok(request, PresenceResponse.from_domain(info).model_dump())


@router.get("/{user_id}")
async def user_presence(
    user_id: UUID,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    info = await _presence.get(str(user_id))
    return ok(request, PresenceResponse.from_domain(info).model_dump())


@router.delete("")
async def clear_presence(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    await _presence.remove(str(current_user.id))
    return ok(request, None, "Presence cleared")
