"""The data platform handle every client component is constructed with."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, Protocol
from urllib.parse import urlparse
from uuid import UUID

from ..schemas import (
    AuthSession,
    AuthUser,
    ChangeEvent,
    CommentRecord,
    ConfirmationResponse,
    LikeRecord,
    PostCreate,
    PostRecord,
    ProfileRecord,
)
from .config import ClientSettings, get_client_settings
from .errors import BackendNotConfiguredError

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[ChangeEvent], Awaitable[None] | None]


class Subscription:
    """Handle for a change subscription; ``unsubscribe`` is idempotent."""

    def __init__(self, cancel: Callable[[], None] | None = None) -> None:
        self._cancel = cancel
        self._active = cancel is not None

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._cancel is not None:
            self._cancel()


class BackendClient(Protocol):
    async def get_user(self) -> AuthUser | None:
        """Return the signed-in identity, or ``None`` for anonymous viewers."""
        ...

    async def sign_up(self, email: str, password: str, role: str) -> AuthSession:
        ...

    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    async def sign_out(self) -> None:
        ...

    async def resend_confirmation(self) -> ConfirmationResponse:
        ...

    async def fetch_profile(self, user_id: UUID) -> ProfileRecord | None:
        """Return the profile row, or ``None`` when it is not visible yet."""
        ...

    async def update_profile(self, changes: dict[str, Any]) -> ProfileRecord:
        ...

    async def fetch_posts(self) -> list[PostRecord]:
        ...

    async def insert_post(self, payload: PostCreate) -> PostRecord:
        ...

    async def update_post(self, post_id: UUID, changes: dict[str, Any]) -> PostRecord:
        ...

    async def delete_post(self, post_id: UUID) -> None:
        ...

    async def insert_like(self, post_id: UUID) -> LikeRecord:
        ...

    async def delete_like(self, post_id: UUID) -> None:
        ...

    async def insert_comment(self, post_id: UUID, content: str) -> CommentRecord:
        ...

    async def upload_file(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` at ``bucket/path`` and return its public URL."""
        ...

    def subscribe(self, tables: Iterable[str], callback: ChangeCallback) -> Subscription:
        ...


class UnconfiguredBackend:
    """Stand-in used when no API URL is configured; every call fails."""

    def __init__(self, reason: str = "EDUBRIDGE_API_URL is not configured") -> None:
        self.reason = reason

    def _fail(self) -> BackendNotConfiguredError:
        return BackendNotConfiguredError(self.reason)

    async def get_user(self) -> AuthUser | None:
        raise self._fail()

    async def sign_up(self, email: str, password: str, role: str) -> AuthSession:
        raise self._fail()

    async def sign_in(self, email: str, password: str) -> AuthSession:
        raise self._fail()

    async def sign_out(self) -> None:
        raise self._fail()

    async def resend_confirmation(self) -> ConfirmationResponse:
        raise self._fail()

    async def fetch_profile(self, user_id: UUID) -> ProfileRecord | None:
        raise self._fail()

    async def update_profile(self, changes: dict[str, Any]) -> ProfileRecord:
        raise self._fail()

    async def fetch_posts(self) -> list[PostRecord]:
        raise self._fail()

    async def insert_post(self, payload: PostCreate) -> PostRecord:
        raise self._fail()

    async def update_post(self, post_id: UUID, changes: dict[str, Any]) -> PostRecord:
        raise self._fail()

    async def delete_post(self, post_id: UUID) -> None:
        raise self._fail()

    async def insert_like(self, post_id: UUID) -> LikeRecord:
        raise self._fail()

    async def delete_like(self, post_id: UUID) -> None:
        raise self._fail()

    async def insert_comment(self, post_id: UUID, content: str) -> CommentRecord:
        raise self._fail()

    async def upload_file(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        raise self._fail()

    def subscribe(self, tables: Iterable[str], callback: ChangeCallback) -> Subscription:
        raise self._fail()


def _valid_api_url(url: str | None) -> bool:
    if not url or not url.strip():
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def create_backend(settings: ClientSettings | None = None) -> BackendClient:
    """Build the backend handle described by ``settings``."""

    resolved = settings or get_client_settings()
    if not _valid_api_url(resolved.api_url):
        logger.warning("EDUBRIDGE_API_URL is missing or invalid; running with a disabled backend")
        return UnconfiguredBackend()

    from .http_backend import HttpBackendClient

    return HttpBackendClient(
        str(resolved.api_url),
        timeout=resolved.request_timeout,
        reconnect_delay=resolved.realtime_reconnect_delay,
    )


__all__ = [
    "BackendClient",
    "ChangeCallback",
    "Subscription",
    "UnconfiguredBackend",
    "create_backend",
]
