"""Schemas for object storage uploads."""
from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class StoredObjectResponse(BaseModel):
    """Response returned after uploading an object to a bucket."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Identifier of the persisted object metadata")
    bucket: str = Field(..., description="Bucket the object was written to")
    path: str = Field(..., description="Object path inside the bucket")
    public_url: str = Field(..., description="Public URL of the uploaded object")
    content_type: str = Field(..., description="MIME type associated with the object")
    size: int = Field(..., description="Size in bytes")


__all__ = ["StoredObjectResponse"]
