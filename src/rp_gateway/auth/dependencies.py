"""FastAPI dependency: get_current_user.

Usage in any protected router:
    from src.rp_gateway.auth.dependencies import get_current_user

    @router.get("/protected")
    async def protected(user: Annotated[UserModel, Depends(get_current_user)]):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.rp_common.database import get_db_session
from src.rp_common.errors import AccountDisabledError, InvalidCredentialsError
from src.rp_gateway.auth.jwt_handler import decode_token
from src.rp_gateway.user.db_models import UserModel

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def resolve_user_from_token(token: str, db: AsyncSession) -> UserModel | None:
    """Return the active, non-deleted user an access token belongs to, else None.

    Shared by the HTTP dependency and the WebSocket handshake.
    """
    try:
        payload = decode_token(token, expected_type="access")
    except InvalidCredentialsError:
        return None

    user_id: str | None = payload.get("sub")
    if not user_id:
        return None

    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or user.deleted_at is not None:
        return None
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel:
    """Extract and validate the JWT Bearer token, return the UserModel.

    Raises HTTP 401 if the token is missing, invalid, expired, or belongs to
    a deleted user. Raises AccountDisabledError if the account is disabled.
    """
    user = await resolve_user_from_token(token, db)
    if user is None:
        raise _CREDENTIALS_EXCEPTION

    if not user.is_active:
        raise AccountDisabledError()

    return user
