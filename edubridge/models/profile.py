"""SQLAlchemy ORM model for member profiles and their credentials."""
from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from edubridge.constants import ROLE_STUDENT, VERIFICATION_UNVERIFIED
from edubridge.database import Base
from .base import TimestampMixin


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(150), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default=ROLE_STUDENT, server_default=ROLE_STUDENT)
    verification_status = Column(
        String(16),
        nullable=False,
        default=VERIFICATION_UNVERIFIED,
        server_default=VERIFICATION_UNVERIFIED,
    )
    avatar_url = Column(String(1024), nullable=True)
    bio = Column(String(500), nullable=True)
    organization = Column(String(255), nullable=True)
    donor_type = Column(String(64), nullable=True)
    email_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    email_confirmation_token = Column(String(64), nullable=True, index=True)
    email_confirmation_sent_at = Column(DateTime(timezone=True), nullable=True)

    posts = relationship("Post", back_populates="author", cascade="all, delete-orphan")
    likes = relationship("Like", back_populates="user", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="user", cascade="all, delete-orphan")
    stored_objects = relationship("StoredObject", back_populates="owner", cascade="all, delete-orphan")


__all__ = ["Profile"]
