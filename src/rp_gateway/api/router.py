"""Auth API router: register, login, refresh.

These are the only public endpoints under /api/v1; every other router
depends on get_current_user. Auth paths get the stricter per-IP budget in
RateLimitMiddleware.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rp_common.database import get_db_session
from src.rp_common.response import ApiResponse, ok
from src.rp_gateway.user.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)
from src.rp_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
_service = UserService()

DbSession = Annotated[AsyncSession, Depends(get_db_session)]

_ACCESS_TTL_SECONDS = settings.JWT_EXPIRE_MINUTES * 60


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Create an account")
async def register(request: Request, body: RegisterRequest, db: DbSession) -> ApiResponse:
    async with db.begin():
        user = await _service.register(
            body.username, body.email, body.password, db, display_name=body.display_name
        )
    return ok(request, RegisterResponse.from_model(user).model_dump(), "User registered successfully")


@router.post("/login", summary="Exchange credentials for a token pair")
async def login(request: Request, body: LoginRequest, db: DbSession) -> ApiResponse:
    user, access_token, refresh_token = await _service.login(body.username, body.password, db)
    data = LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=_ACCESS_TTL_SECONDS,
        user=UserInfo.from_model(user),
    )
    return ok(request, data.model_dump(), "Login successful")


@router.post("/refresh", summary="Exchange a refresh token for a new access token")
async def refresh_token(request: Request, body: RefreshRequest) -> ApiResponse:
    access_token = await _service.refresh(body.refresh_token)
    data = RefreshResponse(access_token=access_token, expires_in=_ACCESS_TTL_SECONDS)
    return ok(request, data.model_dump(), "Token refreshed")
