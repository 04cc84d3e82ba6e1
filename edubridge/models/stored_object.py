"""SQLAlchemy ORM model describing uploaded storage objects."""
from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from edubridge.database import Base
from .base import created_at_column


class StoredObject(Base):
    __tablename__ = "stored_objects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    bucket = Column(String(64), nullable=False, index=True)
    path = Column(String(1024), nullable=False)
    content_type = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=False, default=0)
    public_url = Column(String(2048), nullable=False)
    created_at = created_at_column()

    owner = relationship("Profile", back_populates="stored_objects")

    __table_args__ = (UniqueConstraint("bucket", "path", name="uq_stored_objects_bucket_path"),)


__all__ = ["StoredObject"]
