"""
Pydantic v2 request/response schemas.

Every account operation answers with a :class:`CoreResponse` envelope
(``ok`` plus an optional ``error`` message) instead of an HTTP error, so
clients always receive a well-formed body.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from models import UserRole

# bcrypt only looks at the first 72 bytes of a password
PASSWORD_MAX_BYTES = 72


def _validate_password(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")
    return value


# ── Envelopes ─────────────────────────────────────────────────────────


class CoreResponse(BaseModel):
    ok: bool
    error: Optional[str] = None


class LoginResponse(CoreResponse):
    token: Optional[str] = None


# ── Users ─────────────────────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return _validate_password(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class VerifyEmailRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class UpdateProfileRequest(BaseModel):
    """Any subset of the editable fields; omitted fields are left alone."""

    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[UserRole] = None

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: Optional[str]) -> Optional[str]:
        return _validate_password(value) if value is not None else value


class UserResponse(BaseModel):
    """Public view of a user. The password hash is never included."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    role: UserRole
    verified: bool
    created_at: datetime
    updated_at: datetime


# ── Restaurants ───────────────────────────────────────────────────────


class RestaurantFields(BaseModel):
    name: str = Field(..., min_length=5, max_length=10)
    vegan_only: bool
    is_good: Optional[bool] = False


class RestaurantCreate(RestaurantFields):
    pass


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=5, max_length=10)
    vegan_only: Optional[bool] = None
    is_good: Optional[bool] = None


class RestaurantResponse(RestaurantFields):
    model_config = ConfigDict(from_attributes=True)

    id: int
