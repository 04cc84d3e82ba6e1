"""Object upload routes for the public image buckets."""
from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import StoredObjectResponse
from ..services import StorageConfigurationError, StorageUploadError, require_confirmed_user, upload_object

router = APIRouter(prefix="/storage", tags=["storage"])


@router.post("/{bucket}/objects", response_model=StoredObjectResponse, status_code=status.HTTP_201_CREATED)
async def upload_endpoint(
    bucket: str,
    path: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_session),
    current_user: Profile = Depends(require_confirmed_user),
) -> StoredObjectResponse:
    try:
        stored = await upload_object(db, bucket=bucket, path=path, file=file, owner_id=current_user.id)
    except StorageConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except StorageUploadError as exc:  # pragma: no cover - backend bound
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return StoredObjectResponse.model_validate(stored)


__all__ = ["router"]
