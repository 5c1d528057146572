"""Pydantic request/response schemas for rp_gateway.

All responses are wrapped in ApiResponse[T] at the router layer.
"""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.rp_gateway.user.db_models import UserModel


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    display_name: str | None = Field(None, max_length=100)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        """Enforce: at least one uppercase, one lowercase, one digit."""
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"\d", v):
            raise ValueError("Password must contain at least one digit")
        return v


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UserInfo(BaseModel):
    user_id: str
    username: str
    email: str
    display_name: str | None = None
    credit_balance: int

    @classmethod
    def from_model(cls, user: UserModel) -> "UserInfo":
        return cls(
            user_id=str(user.id),
            username=user.username,
            email=user.email,
            display_name=user.display_name,
            credit_balance=user.credit_balance,
        )


class RegisterResponse(BaseModel):
    user_id: str
    username: str
    email: str
    credit_balance: int
    created_at: str

    @classmethod
    def from_model(cls, user: UserModel) -> "RegisterResponse":
        return cls(
            user_id=str(user.id),
            username=user.username,
            email=user.email,
            credit_balance=user.credit_balance,
            created_at=user.created_at.isoformat(),
        )


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = 1800
    user: UserInfo


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int = 1800
