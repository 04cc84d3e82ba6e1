"""Identity routes: signup, signin, email confirmation."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import TABLE_PROFILES
from ..database import get_session
from ..models import Profile
from ..schemas import AuthSession, AuthUser, ConfirmationResponse, SignInRequest, SignUpRequest
from ..services import (
    confirm_email,
    create_access_token,
    get_current_user,
    publish_change,
    resend_confirmation,
    sign_in,
    sign_up,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_for(profile: Profile, *, confirmation_sent: bool = False) -> AuthSession:
    return AuthSession(
        access_token=create_access_token(profile.id),
        user=AuthUser.model_validate(profile),
        confirmation_sent=confirmation_sent,
    )


@router.post("/signup", response_model=AuthSession, status_code=status.HTTP_201_CREATED)
async def signup_endpoint(payload: SignUpRequest, db: Session = Depends(get_session)) -> AuthSession:
    profile, sent = sign_up(db, payload)
    await publish_change(TABLE_PROFILES, "INSERT", profile.id)
    return _session_for(profile, confirmation_sent=sent)


@router.post("/signin", response_model=AuthSession)
async def signin_endpoint(payload: SignInRequest, db: Session = Depends(get_session)) -> AuthSession:
    profile = sign_in(db, str(payload.email), payload.password)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid login credentials")
    if profile.email_confirmed_at is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Email not confirmed")
    return _session_for(profile)


@router.post("/signout", status_code=status.HTTP_204_NO_CONTENT)
async def signout_endpoint(current_user: Profile = Depends(get_current_user)) -> None:
    # Tokens are stateless; the client simply discards its copy.
    return None


@router.get("/user", response_model=AuthUser)
async def user_endpoint(current_user: Profile = Depends(get_current_user)) -> AuthUser:
    return AuthUser.model_validate(current_user)


@router.post("/resend", response_model=ConfirmationResponse)
async def resend_endpoint(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_session),
) -> ConfirmationResponse:
    return resend_confirmation(db, current_user)


@router.get("/confirm", response_model=AuthUser)
async def confirm_endpoint(token: str = Query(..., min_length=1), db: Session = Depends(get_session)):
    profile = confirm_email(db, token)
    redirect_url = get_settings().email_redirect_url
    if redirect_url:
        return RedirectResponse(redirect_url, status_code=status.HTTP_303_SEE_OTHER)
    return AuthUser.model_validate(profile)


__all__ = ["router"]
