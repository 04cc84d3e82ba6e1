"""Schemas for table change notifications."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

ChangeTable = Literal["profiles", "posts", "likes", "comments"]
ChangeKind = Literal["INSERT", "UPDATE", "DELETE"]


class ChangeEvent(BaseModel):
    table: ChangeTable
    event: ChangeKind
    record_id: UUID | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = ["ChangeTable", "ChangeKind", "ChangeEvent"]
