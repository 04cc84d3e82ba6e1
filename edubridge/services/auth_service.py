"""Identity, password and token handling backed by the profiles table."""
from __future__ import annotations

import logging
import os
import re
import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, cast
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..constants import ADMIN_TOKEN_HEADER
from ..database import get_session
from ..models import Profile
from ..schemas import ConfirmationResponse, SignUpRequest
from ..security.secrets import MissingSecretError, require_secret, secret_matches
from .email_service import EmailDeliveryError, send_confirmation_email

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)
_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
DEFAULT_TOKEN_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "1440"))
_RESEND_COOLDOWN = timedelta(seconds=60)
_USERNAME_CLEANUP = re.compile(r"[^a-z0-9_]+")


@lru_cache(maxsize=1)
def _get_jwt_secret() -> str:
    try:
        return require_secret("JWT_SECRET_KEY")
    except MissingSecretError as exc:
        raise RuntimeError(str(exc)) from exc


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed_password)
    except ValueError:
        logger.warning("Stored password hash could not be parsed")
        return False


def create_access_token(subject: UUID, *, expires_minutes: Optional[int] = None) -> str:
    """Create a signed JWT holding the provided ``subject``."""

    now = _now()
    payload = {
        "sub": str(subject),
        "exp": now + timedelta(minutes=expires_minutes or DEFAULT_TOKEN_MINUTES),
        "iat": now,
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> UUID:
    """Decode and validate a JWT, returning the embedded subject UUID."""

    try:
        payload = jwt.decode(token, _get_jwt_secret(), algorithms=[ALGORITHM])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    try:
        return UUID(subject)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload") from exc


def _derive_username(db: Session, email: str) -> str:
    base = _USERNAME_CLEANUP.sub("_", email.split("@", 1)[0].lower()).strip("_")[:24] or "member"
    if len(base) < 3:
        base = f"{base}_member"
    candidate = base
    while db.scalar(select(Profile.id).where(Profile.username == candidate)) is not None:
        candidate = f"{base}_{secrets.token_hex(2)}"
    return candidate


def _issue_confirmation(profile: Profile) -> str:
    token = secrets.token_urlsafe(32)
    profile.email_confirmation_token = token
    profile.email_confirmation_sent_at = _now()
    return token


def _deliver_confirmation(profile: Profile, token: str) -> bool:
    try:
        send_confirmation_email(cast(str, profile.email), token)
    except EmailDeliveryError as exc:
        logger.warning("Confirmation email for %s was not sent: %s", profile.id, exc)
        return False
    return True


def sign_up(db: Session, payload: SignUpRequest) -> tuple[Profile, bool]:
    """Create the account and its profile; returns the profile and whether an email went out."""

    email = str(payload.email).lower()
    if db.scalar(select(Profile.id).where(Profile.email == email)) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already registered")

    if payload.username:
        username = payload.username.strip()
        if db.scalar(select(Profile.id).where(Profile.username == username)) is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already in use")
    else:
        username = _derive_username(db, email)

    profile = Profile(
        email=email,
        username=username,
        hashed_password=hash_password(payload.password),
        role=payload.role,
    )

    token: str | None = None
    if get_settings().email_confirmation_required:
        token = _issue_confirmation(profile)
    else:
        profile.email_confirmed_at = _now()

    try:
        db.add(profile)
        db.commit()
        db.refresh(profile)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to register %s", email)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Unable to register user") from exc

    logger.info("Registered %s as %s", profile.id, profile.role)
    sent = _deliver_confirmation(profile, token) if token else False
    return profile, sent


def sign_in(db: Session, email: str, password: str) -> Profile | None:
    """Return the profile matching the credentials, or ``None``."""

    profile = db.scalar(select(Profile).where(Profile.email == email.strip().lower()))
    if profile is None or not verify_password(password, cast(str, profile.hashed_password)):
        return None
    return profile


def confirm_email(db: Session, token: str) -> Profile:
    profile = db.scalar(select(Profile).where(Profile.email_confirmation_token == token.strip()))
    if profile is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid confirmation link")

    sent_at = cast(datetime | None, profile.email_confirmation_sent_at)
    ttl = timedelta(hours=get_settings().email_confirmation_ttl_hours)
    if sent_at is None or _now() - _as_aware(sent_at) > ttl:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Confirmation link expired")

    profile.email_confirmed_at = _now()
    profile.email_confirmation_token = None
    profile.email_confirmation_sent_at = None
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to confirm email") from exc

    db.refresh(profile)
    return profile


def resend_confirmation(db: Session, profile: Profile) -> ConfirmationResponse:
    if profile.email_confirmed_at is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already confirmed")

    sent_at = cast(datetime | None, profile.email_confirmation_sent_at)
    if sent_at is not None:
        elapsed = _now() - _as_aware(sent_at)
        if elapsed < _RESEND_COOLDOWN:
            return ConfirmationResponse(sent=False, cooldown_seconds=int((_RESEND_COOLDOWN - elapsed).total_seconds()))

    token = _issue_confirmation(profile)
    try:
        send_confirmation_email(cast(str, profile.email), token)
    except EmailDeliveryError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Unable to send confirmation email")

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to record confirmation") from exc

    return ConfirmationResponse(sent=True, cooldown_seconds=int(_RESEND_COOLDOWN.total_seconds()))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    db: Session = Depends(get_session),
) -> Profile:
    """Resolve the authenticated profile from the provided bearer token."""

    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    profile = db.get(Profile, decode_access_token(credentials.credentials))
    if profile is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return profile


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    db: Session = Depends(get_session),
) -> Profile | None:
    """Return the authenticated profile when a valid bearer token is provided."""

    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    try:
        user_id = decode_access_token(credentials.credentials)
    except HTTPException:
        return None
    return db.get(Profile, user_id)


async def require_confirmed_user(current_user: Profile = Depends(get_current_user)) -> Profile:
    if current_user.email_confirmed_at is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Email not confirmed")
    return current_user


async def require_admin_token(
    token: str | None = Header(default=None, alias=ADMIN_TOKEN_HEADER),
) -> None:
    if not secret_matches("ADMIN_TOKEN", token):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operator token required")


__all__ = [
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_access_token",
    "sign_up",
    "sign_in",
    "confirm_email",
    "resend_confirmation",
    "get_current_user",
    "get_optional_user",
    "require_confirmed_user",
    "require_admin_token",
]
