"""Object storage for post images and profile pictures.

Objects live in logical buckets (``post-images``, ``profile-pictures``) and
their paths must start with the uploader's profile id. Files are written to
the local filesystem by default; configuring ``S3_ENDPOINT_URL`` and
``S3_BUCKET`` switches to an S3-compatible object store.
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote
from uuid import UUID

from boto3.session import Session as Boto3Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import STORAGE_BUCKETS
from ..models import StoredObject
from ..security.secrets import MissingSecretError, require_secret

logger = logging.getLogger(__name__)

_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
_MAX_PATH_LENGTH = 512

# Public objects are served with a media type derived from the extension.
_IMAGE_EXTENSIONS: dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


class StorageConfigurationError(RuntimeError):
    """Raised when the configured object store cannot be used."""


class StorageUploadError(RuntimeError):
    """Raised when writing an object fails."""


class StorageBackend(Protocol):
    def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Persist ``data`` and return its public URL."""
        ...


class LocalStorageBackend:
    """Writes objects below ``root`` and serves them from ``/storage/public``."""

    def __init__(self, root: Path, public_base_url: str) -> None:
        self.root = root
        self.public_base_url = public_base_url.rstrip("/")

    def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        target = self.root / bucket / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.exception("Writing %s/%s to local storage failed", bucket, path)
            raise StorageUploadError("Unable to write object to storage") from exc
        return f"{self.public_base_url}/storage/public/{bucket}/{quote(path)}"


class S3StorageBackend:
    """Stores objects in one S3-compatible bucket, keyed ``<bucket>/<path>``."""

    def __init__(self, client: BaseClient, s3_bucket: str, public_base_url: str) -> None:
        self.client = client
        self.s3_bucket = s3_bucket
        self.public_base_url = public_base_url.rstrip("/")

    def put(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        key = f"{bucket}/{path}"
        try:
            self.client.put_object(
                Bucket=self.s3_bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ACL="public-read",
            )
        except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network bound
            logger.exception("Upload of %s to S3 failed", key)
            raise StorageUploadError("Upload to object storage failed") from exc
        return f"{self.public_base_url}/{quote(key)}"


@lru_cache(maxsize=1)
def get_storage_backend() -> StorageBackend:
    """Build the configured storage backend once per process."""

    settings = get_settings()
    if not settings.s3_endpoint_url:
        return LocalStorageBackend(Path(settings.storage_root), settings.public_base_url)

    if not settings.s3_bucket:
        raise StorageConfigurationError("S3_BUCKET must be set when S3_ENDPOINT_URL is configured")
    try:
        access_key = require_secret("S3_ACCESS_KEY_ID")
        secret_key = require_secret("S3_SECRET_ACCESS_KEY")
    except MissingSecretError as exc:
        raise StorageConfigurationError(str(exc)) from exc

    client = Boto3Session().client(
        "s3",
        region_name=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
    )
    public_base = settings.s3_public_base_url or f"{settings.s3_endpoint_url.rstrip('/')}/{settings.s3_bucket}"
    return S3StorageBackend(client, settings.s3_bucket, public_base)


def normalize_object_path(path: str) -> str:
    """Validate an object path and return it without surrounding slashes."""

    candidate = (path or "").strip().replace("\\", "/").strip("/")
    if not candidate or len(candidate) > _MAX_PATH_LENGTH:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid object path")
    segments = candidate.split("/")
    for segment in segments:
        if segment in {"", ".", ".."} or not _SEGMENT_PATTERN.match(segment):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid object path")
    return "/".join(segments)


def resolve_image_content_type(path: str, declared: str | None) -> str:
    """Return the media type for ``path``; the declared type must agree with the extension."""

    expected = _IMAGE_EXTENSIONS.get(PurePosixPath(path).suffix.lower())
    if expected is None:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only .png, .jpg, .jpeg, .gif and .webp images are accepted",
        )
    content_type = (declared or "").split(";", 1)[0].strip().lower()
    if content_type == "image/jpg":
        content_type = "image/jpeg"
    if content_type != expected:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="File type does not match the file extension",
        )
    return expected


def ensure_owner_namespace(path: str, owner_id: UUID) -> None:
    if path.split("/", 1)[0] != str(owner_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Objects must be stored under your own user id",
        )


async def upload_object(
    db: Session,
    *,
    bucket: str,
    path: str,
    file: UploadFile,
    owner_id: UUID,
    backend: StorageBackend | None = None,
) -> StoredObject:
    """Store ``file`` at ``bucket/path`` on behalf of ``owner_id``."""

    if bucket not in STORAGE_BUCKETS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bucket not found")

    normalized_path = normalize_object_path(path)
    ensure_owner_namespace(normalized_path, owner_id)

    content_type = resolve_image_content_type(normalized_path, file.content_type)

    existing = db.scalar(select(StoredObject).where(StoredObject.bucket == bucket, StoredObject.path == normalized_path))
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="The resource already exists")

    limit = get_settings().storage_max_upload_bytes
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Upload is too large")
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")

    storage = backend or get_storage_backend()
    public_url = await run_in_threadpool(storage.put, bucket, normalized_path, data, content_type)

    stored = StoredObject(
        owner_id=owner_id,
        bucket=bucket,
        path=normalized_path,
        content_type=content_type,
        size=len(data),
        public_url=public_url,
    )
    try:
        db.add(stored)
        db.commit()
        db.refresh(stored)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist metadata for %s/%s", bucket, normalized_path)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to persist object metadata",
        ) from exc

    logger.info("Stored %s/%s (%d bytes) for %s", bucket, normalized_path, len(data), owner_id)
    return stored


__all__ = [
    "StorageBackend",
    "StorageConfigurationError",
    "StorageUploadError",
    "LocalStorageBackend",
    "S3StorageBackend",
    "get_storage_backend",
    "normalize_object_path",
    "resolve_image_content_type",
    "ensure_owner_namespace",
    "upload_object",
]
