"""Profile read and update routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..constants import TABLE_PROFILES
from ..database import get_session
from ..models import Profile
from ..schemas import ProfileRecord, ProfileUpdateRequest, VerificationUpdateRequest
from ..services import (
    get_current_user,
    get_profile,
    publish_change,
    request_verification,
    require_admin_token,
    set_verification_status,
    update_profile,
)

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.patch("/me", response_model=ProfileRecord)
async def update_my_profile(
    payload: ProfileUpdateRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> ProfileRecord:
    profile = update_profile(db, profile_id=current_user.id, payload=payload)
    await publish_change(TABLE_PROFILES, "UPDATE", profile.id)
    return ProfileRecord.model_validate(profile)


@router.post("/me/verification-request", response_model=ProfileRecord)
async def request_my_verification(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> ProfileRecord:
    profile = request_verification(db, profile_id=current_user.id)
    await publish_change(TABLE_PROFILES, "UPDATE", profile.id)
    return ProfileRecord.model_validate(profile)


@router.get("/{profile_id}", response_model=ProfileRecord)
async def read_profile(profile_id: UUID, db: Session = Depends(get_session)) -> ProfileRecord:
    return ProfileRecord.model_validate(get_profile(db, profile_id))


@router.put("/{profile_id}/verification", response_model=ProfileRecord, dependencies=[Depends(require_admin_token)])
async def update_verification(
    profile_id: UUID,
    payload: VerificationUpdateRequest,
    db: Session = Depends(get_session),
) -> ProfileRecord:
    profile = set_verification_status(db, profile_id=profile_id, verification_status=payload.verification_status)
    await publish_change(TABLE_PROFILES, "UPDATE", profile.id)
    return ProfileRecord.model_validate(profile)


__all__ = ["router"]
