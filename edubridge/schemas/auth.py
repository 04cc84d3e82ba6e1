"""Pydantic schemas for identity and session endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    role: Literal["student", "donor"] = "student"
    username: str | None = Field(default=None, min_length=3, max_length=32)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class AuthUser(BaseModel):
    """Identity as seen by a signed-in client."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    email_confirmed_at: datetime | None = None

    @property
    def email_confirmed(self) -> bool:
        return self.email_confirmed_at is not None


class AuthSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: AuthUser
    confirmation_sent: bool = False


class ConfirmationResponse(BaseModel):
    sent: bool
    cooldown_seconds: int = 0


__all__ = ["SignUpRequest", "SignInRequest", "AuthUser", "AuthSession", "ConfirmationResponse"]
