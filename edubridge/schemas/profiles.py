"""Schemas for profile records and profile updates."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["student", "donor"]
VerificationStatus = Literal["unverified", "pending", "verified"]


class ProfileRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    username: str
    role: Role
    verification_status: VerificationStatus
    avatar_url: str | None = None
    bio: str | None = None
    organization: str | None = None
    donor_type: str | None = None
    created_at: datetime


class ProfileUpdateRequest(BaseModel):
    username: str | None = Field(default=None, min_length=3, max_length=32)
    bio: str | None = Field(default=None, max_length=500)
    organization: str | None = Field(default=None, max_length=255)
    donor_type: str | None = Field(default=None, max_length=64)
    avatar_url: str | None = Field(default=None, max_length=1024)

    @field_validator("bio", "organization", "donor_type", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class VerificationUpdateRequest(BaseModel):
    verification_status: VerificationStatus


__all__ = ["Role", "VerificationStatus", "ProfileRecord", "ProfileUpdateRequest", "VerificationUpdateRequest"]
