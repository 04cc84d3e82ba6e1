"""Viewer identity and profile, with the signup replication-lag retry."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable
from uuid import UUID

from ..constants import BUCKET_PROFILE_PICTURES, ROLE_STUDENT
from ..schemas import AuthSession, AuthUser, ProfileRecord
from .backend import BackendClient
from .composer import build_storage_path
from .config import ClientSettings, get_client_settings
from .errors import BackendError, BackendNotConfiguredError, EdubridgeClientError
from .notifier import Notifier

logger = logging.getLogger(__name__)

_FRIENDLY_AUTH_MESSAGES = {
    "Invalid login credentials": "Invalid email or password",
    "Email not confirmed": "Please verify your email before signing in",
    "User already registered": "An account with this email already exists",
}


def friendly_auth_message(exc: EdubridgeClientError) -> str:
    if isinstance(exc, BackendNotConfiguredError):
        return "The service is not configured yet"
    return _FRIENDLY_AUTH_MESSAGES.get(str(exc), str(exc) or "Authentication failed")


class ViewerSession:
    def __init__(
        self,
        backend: BackendClient,
        notifier: Notifier,
        *,
        settings: ClientSettings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        resolved = settings or get_client_settings()
        self.backend = backend
        self.notifier = notifier
        self.profile_load_attempts = resolved.profile_load_attempts
        self.profile_load_delay = resolved.profile_load_delay
        self._sleep = sleep
        self._clock = clock
        self.user: AuthUser | None = None
        self.profile: ProfileRecord | None = None
        self.loading = True
        self.configuration_required = False

    @property
    def email_confirmed(self) -> bool:
        return self.user is not None and self.user.email_confirmed

    async def initialize(self) -> None:
        """Resolve the current identity; only confirmed accounts load a profile."""

        try:
            self.user = await self.backend.get_user()
        except BackendNotConfiguredError:
            self.configuration_required = True
            self.user = None
        except EdubridgeClientError as exc:
            logger.warning("Could not restore session: %s", exc)
            self.user = None

        if self.email_confirmed:
            await self.load_profile(self.user.id)
        else:
            self.profile = None
        self.loading = False

    async def load_profile(self, user_id: UUID) -> ProfileRecord | None:
        for attempt in range(1, self.profile_load_attempts + 1):
            try:
                profile = await self.backend.fetch_profile(user_id)
            except BackendNotConfiguredError:
                self.configuration_required = True
                break
            except EdubridgeClientError as exc:
                logger.warning("Profile load attempt %d for %s failed: %s", attempt, user_id, exc)
                profile = None

            if profile is not None:
                self.profile = profile
                return profile
            if attempt < self.profile_load_attempts:
                await self._sleep(self.profile_load_delay)

        logger.warning("Profile %s not available after %d attempts", user_id, self.profile_load_attempts)
        self.profile = None
        return None

    async def _adopt(self, session: AuthSession) -> None:
        self.user = session.user
        if session.user.email_confirmed:
            await self.load_profile(session.user.id)
        else:
            self.profile = None

    async def sign_up(self, email: str, password: str, role: str = ROLE_STUDENT) -> bool:
        try:
            session = await self.backend.sign_up(email, password, role)
        except EdubridgeClientError as exc:
            self.notifier.error(friendly_auth_message(exc))
            return False

        await self._adopt(session)
        if session.user.email_confirmed:
            self.notifier.success("Account created!")
        else:
            self.notifier.success("Check your email to confirm your account")
        return True

    async def sign_in(self, email: str, password: str) -> bool:
        try:
            session = await self.backend.sign_in(email, password)
        except EdubridgeClientError as exc:
            self.notifier.error(friendly_auth_message(exc))
            return False

        await self._adopt(session)
        self.notifier.success("Welcome back!")
        return True

    async def sign_out(self) -> None:
        try:
            await self.backend.sign_out()
        except EdubridgeClientError as exc:
            logger.warning("Sign out request failed: %s", exc)
        self.user = None
        self.profile = None
        self.notifier.success("Signed out")

    async def resend_confirmation(self) -> bool:
        if self.user is None:
            self.notifier.error("Please sign in first")
            return False
        if self.user.email_confirmed:
            self.notifier.info("Your email is already verified")
            return False
        try:
            result = await self.backend.resend_confirmation()
        except EdubridgeClientError as exc:
            self.notifier.error(f"Failed to resend confirmation: {exc}")
            return False
        if not result.sent:
            self.notifier.info(f"Please wait {result.cooldown_seconds} seconds before requesting another email")
            return False
        self.notifier.success("Confirmation email sent")
        return True

    async def update_profile(self, changes: dict[str, Any]) -> ProfileRecord | None:
        if self.user is None:
            self.notifier.error("Please sign in first")
            return None
        try:
            profile = await self.backend.update_profile(changes)
        except BackendError as exc:
            self.notifier.error("That username is already taken" if exc.status_code == 409 else "Failed to update profile")
            return None
        except EdubridgeClientError:
            self.notifier.error("Failed to update profile")
            return None
        self.profile = profile
        self.notifier.success("Profile updated")
        return profile

    async def update_avatar(self, filename: str, data: bytes, content_type: str) -> str | None:
        if self.user is None or self.profile is None:
            self.notifier.error("Please sign in first")
            return None
        path = build_storage_path(self.user.id, filename, int(self._clock() * 1000))
        try:
            url = await self.backend.upload_file(BUCKET_PROFILE_PICTURES, path, data, content_type)
            await self.backend.update_profile({"avatar_url": url})
        except EdubridgeClientError as exc:
            logger.warning("Avatar update failed: %s", exc)
            self.notifier.error("Failed to update avatar")
            return None

        await self.load_profile(self.user.id)
        self.notifier.success("Avatar updated")
        return url


__all__ = ["ViewerSession", "friendly_auth_message"]
