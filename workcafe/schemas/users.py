from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from workcafe.schemas.checkins import CheckInResponse
from workcafe.schemas.common import PatchModel


class UserPublic(BaseModel):
    id: str
    username: str
    email: EmailStr
    role: str
    first_name: str | None
    last_name: str | None
    profile_image: str | None


class UserMeResponse(UserPublic):
    bio: str | None
    is_verified: bool
    is_active: bool
    created_at: datetime
    active_check_in: CheckInResponse | None = None


class UserUpdate(PatchModel):
    not_nullable = frozenset({"username", "email"})

    username: str | None = Field(default=None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    profile_image: str | None = Field(default=None, max_length=500)
    bio: str | None = Field(default=None, max_length=1000)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=6, max_length=128)
