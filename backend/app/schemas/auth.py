"""Authentication schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# Request schemas
class SignupRequest(BaseModel):
    """Signup request schema."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


# Response schemas
class UserResponse(BaseModel):
    """Public view of a user."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str | None = Field(default=None, validation_alias="full_name")
    email: str
    role: str
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime


class TokensResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int


class AuthResponse(BaseModel):
    """Signup and login response."""

    user: UserResponse
    tokens: TokensResponse


class RefreshResponse(BaseModel):
    tokens: TokensResponse


class StatusResponse(BaseModel):
    """Generic status response schema."""

    status: Literal["ok"]
    message: str | None = None


class MeResponse(BaseModel):
    user: UserResponse
