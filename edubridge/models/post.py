"""SQLAlchemy ORM models for posts and their likes and comments."""
from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from edubridge.database import Base
from .base import created_at_column, utcnow


class Post(Base):
    __tablename__ = "posts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    post_type = Column(String(16), nullable=False)
    content = Column(Text, nullable=True)
    resource_title = Column(String(255), nullable=True)
    resource_category = Column(String(32), nullable=True)
    resource_contact = Column(String(255), nullable=True)
    image_url = Column(String(1024), nullable=True)
    link_url = Column(String(2048), nullable=True)
    link_title = Column(String(512), nullable=True)
    link_description = Column(Text, nullable=True)
    link_image = Column(String(2048), nullable=True)
    created_at = created_at_column()
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=True)

    author = relationship("Profile", back_populates="posts")
    likes = relationship("Like", back_populates="post", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="post", cascade="all, delete-orphan")


class Like(Base):
    __tablename__ = "likes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = Column(UUID(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = created_at_column()

    post = relationship("Post", back_populates="likes")
    user = relationship("Profile", back_populates="likes")

    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_likes_post_user"),)


class Comment(Base):
    __tablename__ = "comments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = Column(UUID(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = created_at_column()

    post = relationship("Post", back_populates="comments")
    user = relationship("Profile", back_populates="comments")


__all__ = ["Post", "Like", "Comment"]
