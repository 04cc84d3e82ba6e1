from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import ROLE_DONOR, VERIFICATION_PENDING, VERIFICATION_VERIFIED
from ..models import Profile
from ..schemas import ProfileUpdateRequest


def get_profile(db: Session, profile_id: UUID) -> Profile:
    profile = db.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


def _commit(db: Session, profile: Profile, failure: str) -> Profile:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure) from exc

    db.refresh(profile)
    return profile


def update_profile(db: Session, *, profile_id: UUID, payload: ProfileUpdateRequest) -> Profile:
    """Apply profile updates for the supplied ``profile_id``."""

    profile = get_profile(db, profile_id)

    # Only fields the client actually sent
    update_data = payload.model_dump(exclude_unset=True)

    # A null or empty avatar never overwrites the stored one.
    if "avatar_url" in update_data and not update_data["avatar_url"]:
        update_data.pop("avatar_url")

    if "username" in update_data:
        username = (update_data["username"] or "").strip()
        if not username:
            update_data.pop("username")
        else:
            taken = db.scalar(select(Profile.id).where(Profile.username == username, Profile.id != profile_id))
            if taken is not None:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already in use")
            update_data["username"] = username

    for field, value in update_data.items():
        setattr(profile, field, value)

    return _commit(db, profile, "Failed to update profile")


def request_verification(db: Session, *, profile_id: UUID) -> Profile:
    """Move a student's profile into the pending queue."""

    profile = get_profile(db, profile_id)
    if profile.role == ROLE_DONOR:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Donors do not need verification")
    if profile.verification_status == VERIFICATION_VERIFIED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Profile is already verified")
    if profile.verification_status == VERIFICATION_PENDING:
        return profile

    profile.verification_status = VERIFICATION_PENDING
    return _commit(db, profile, "Failed to request verification")


def set_verification_status(db: Session, *, profile_id: UUID, verification_status: str) -> Profile:
    profile = get_profile(db, profile_id)
    profile.verification_status = verification_status
    return _commit(db, profile, "Failed to update verification status")


__all__ = ["get_profile", "update_profile", "request_verification", "set_verification_status"]
