"""Pydantic schemas for posts, likes and comments."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .profiles import ProfileRecord

PostType = Literal["wisdom", "donation"]
ResourceCategory = Literal[
    "books",
    "stationery",
    "electronics",
    "courses",
    "mentorship",
    "scholarships",
    "internships",
    "software",
    "other",
]

LINK_URL_MAX_LENGTH = 2048

_RESOURCE_FIELDS = ("resource_title", "resource_category", "resource_contact")


def _strip(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class PostCreate(BaseModel):
    """Insert payload. Wisdom posts carry text only, donation posts resource fields only."""

    post_type: PostType
    content: str | None = Field(default=None, max_length=5000)
    resource_title: str | None = Field(default=None, max_length=255)
    resource_category: ResourceCategory | None = None
    resource_contact: str | None = Field(default=None, max_length=255)
    image_url: str | None = Field(default=None, max_length=1024)
    link_url: str | None = Field(default=None, max_length=LINK_URL_MAX_LENGTH)
    link_title: str | None = Field(default=None, max_length=512)
    link_description: str | None = None
    link_image: str | None = Field(default=None, max_length=2048)

    @field_validator(
        "content",
        "resource_title",
        "resource_category",
        "resource_contact",
        "image_url",
        "link_url",
        "link_title",
        "link_description",
        "link_image",
        mode="before",
    )
    @classmethod
    def normalize_text(cls, value):
        return _strip(value)

    @model_validator(mode="after")
    def check_shape(self) -> "PostCreate":
        if self.post_type == "wisdom":
            if not self.content:
                raise ValueError("Wisdom posts require content")
            if any(getattr(self, name) is not None for name in _RESOURCE_FIELDS):
                raise ValueError("Wisdom posts cannot carry resource fields")
        else:
            missing = [name for name in _RESOURCE_FIELDS if getattr(self, name) is None]
            if missing:
                raise ValueError("Donation posts require " + ", ".join(missing))
            if self.content is not None:
                raise ValueError("Donation posts cannot carry free-text content")
        return self


class PostUpdate(BaseModel):
    """Partial update; the post type itself is immutable."""

    content: str | None = Field(default=None, max_length=5000)
    resource_title: str | None = Field(default=None, max_length=255)
    resource_category: ResourceCategory | None = None
    resource_contact: str | None = Field(default=None, max_length=255)
    image_url: str | None = Field(default=None, max_length=1024)

    @field_validator("content", "resource_title", "resource_category", "resource_contact", "image_url", mode="before")
    @classmethod
    def normalize_text(cls, value):
        return _strip(value)


class LikeRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    user_id: UUID
    created_at: datetime


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("Comment cannot be empty")
        return text


class CommentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    profiles: ProfileRecord | None = None
    # Set on optimistic client-side copies until the server row replaces them.
    pending: bool = Field(default=False, exclude=True)


class PostRecord(BaseModel):
    """A post joined with its author profile, likes and comments."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    post_type: PostType
    content: str | None = None
    resource_title: str | None = None
    resource_category: str | None = None
    resource_contact: str | None = None
    image_url: str | None = None
    link_url: str | None = None
    link_title: str | None = None
    link_description: str | None = None
    link_image: str | None = None
    created_at: datetime
    profiles: ProfileRecord | None = None
    likes: list[LikeRecord] = Field(default_factory=list)
    comments: list[CommentRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_shape(self) -> "PostRecord":
        if self.post_type == "wisdom" and not self.content:
            raise ValueError("wisdom post without content")
        if self.post_type == "donation" and not self.resource_title:
            raise ValueError("donation post without resource_title")
        return self

    @property
    def like_count(self) -> int:
        return len(self.likes)

    def liked_by(self, user_id: UUID) -> bool:
        return any(like.user_id == user_id for like in self.likes)


class PostFeedResponse(BaseModel):
    items: list[PostRecord]


__all__ = [
    "LINK_URL_MAX_LENGTH",
    "PostType",
    "ResourceCategory",
    "PostCreate",
    "PostUpdate",
    "LikeRecord",
    "CommentCreate",
    "CommentRecord",
    "PostRecord",
    "PostFeedResponse",
]
