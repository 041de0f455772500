from __future__ import annotations

import re
from datetime import datetime

from pydantic import Field, field_validator

from medstock.app.db.models.core_types import Role
from medstock.app.schemas.base import CamelModel

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class SignupRequest(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(max_length=255)
    password: str = Field(min_length=3)
    role: Role = Role.user

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def email_well_formed(cls, v: str) -> str:
        if not EMAIL_RE.match(v):
            raise ValueError("Email should be valid")
        return v


class LoginRequest(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TokenResponse(CamelModel):
    token: str


class UserUpdate(CamelModel):
    name: str | None = Field(default=None, max_length=200)
    password: str | None = Field(default=None, min_length=3)


class UserRead(CamelModel):
    id: int
    name: str
    email: str
    role: Role
    created_at: datetime
    updated_at: datetime
