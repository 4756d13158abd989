from __future__ import annotations
from pydantic import EmailStr, Field, field_validator
from uuid import UUID
from datetime import datetime
from motoverse.schemas.base import CamelModel

class RegisterRequest(CamelModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=32, pattern=r"^[A-Za-z0-9_]+$")
    password: str = Field(min_length=8, max_length=72)
    name: str | None = Field(default=None, max_length=120)

    @field_validator("username")
    @classmethod
    def lower(cls, v: str) -> str:
        return v.lower()

class LoginRequest(CamelModel):
    email: EmailStr
    password: str

class UserPublic(CamelModel):
    id: UUID
    email: EmailStr
    username: str
    name: str | None = None
    avatar: str | None = None
    role: str
    created_at: datetime

class TokenPair(CamelModel):
    access: str
    refresh: str
