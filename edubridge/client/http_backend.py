"""``BackendClient`` implementation speaking HTTP to the data platform."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Iterable, TypeVar, cast
from uuid import UUID

import httpx
from pydantic import BaseModel, ValidationError

from ..schemas import (
    AuthSession,
    AuthUser,
    ChangeEvent,
    CommentRecord,
    ConfirmationResponse,
    LikeRecord,
    PostCreate,
    PostFeedResponse,
    PostRecord,
    ProfileRecord,
)
from .backend import ChangeCallback, Subscription
from .errors import BackendError, MalformedRecordError

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase or f"HTTP {response.status_code}"

    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail:
        first = detail[0]
        if isinstance(first, dict) and first.get("msg"):
            return str(first["msg"])
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


def _validate(model: type[RecordT], data: Any) -> RecordT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Rejected malformed %s record: %s", model.__name__, exc.errors()[:3])
        raise MalformedRecordError(f"Malformed {model.__name__} record") from exc


class HttpBackendClient:
    """Async HTTP client for the data platform.

    The bearer token of the current session is kept in memory. A custom
    ``httpx.AsyncClient`` may be injected (tests pass one bound to an ASGI
    transport); otherwise one is created and owned by this instance.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        reconnect_delay: float = 2.0,
        client: httpx.AsyncClient | None = None,
        access_token: str | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._reconnect_delay = reconnect_delay
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)
        self.access_token = access_token

    def _headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("Backend timeout | method=%s path=%s timeout=%s", method, path, self._timeout)
            raise BackendError("The request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("Backend transport error | method=%s path=%s error=%s", method, path, type(exc).__name__)
            raise BackendError("Unable to reach the server") from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.info("Backend rejected %s %s with %s: %s", method, path, response.status_code, message)
            raise BackendError(message, status_code=response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedRecordError("Response was not valid JSON") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # Identity

    async def get_user(self) -> AuthUser | None:
        if not self.access_token:
            return None
        try:
            response = await self._request("GET", "/auth/user")
        except BackendError as exc:
            if exc.status_code == 401:
                self.access_token = None
                return None
            raise
        return _validate(AuthUser, self._json(response))

    async def _start_session(self, path: str, body: dict[str, Any]) -> AuthSession:
        response = await self._request("POST", path, json=body)
        session = _validate(AuthSession, self._json(response))
        self.access_token = session.access_token
        return session

    async def sign_up(self, email: str, password: str, role: str) -> AuthSession:
        return await self._start_session("/auth/signup", {"email": email, "password": password, "role": role})

    async def sign_in(self, email: str, password: str) -> AuthSession:
        return await self._start_session("/auth/signin", {"email": email, "password": password})

    async def sign_out(self) -> None:
        try:
            if self.access_token:
                await self._request("POST", "/auth/signout")
        finally:
            self.access_token = None

    async def resend_confirmation(self) -> ConfirmationResponse:
        response = await self._request("POST", "/auth/resend")
        return _validate(ConfirmationResponse, self._json(response))

    # Profiles

    async def fetch_profile(self, user_id: UUID) -> ProfileRecord | None:
        try:
            response = await self._request("GET", f"/profiles/{user_id}")
        except BackendError as exc:
            if exc.status_code == 404:
                return None
            raise
        return _validate(ProfileRecord, self._json(response))

    async def update_profile(self, changes: dict[str, Any]) -> ProfileRecord:
        response = await self._request("PATCH", "/profiles/me", json=changes)
        return _validate(ProfileRecord, self._json(response))

    # Posts

    async def fetch_posts(self) -> list[PostRecord]:
        response = await self._request("GET", "/posts/feed")
        return _validate(PostFeedResponse, self._json(response)).items

    async def insert_post(self, payload: PostCreate) -> PostRecord:
        response = await self._request("POST", "/posts/", json=payload.model_dump(mode="json", exclude_none=True))
        return _validate(PostRecord, self._json(response))

    async def update_post(self, post_id: UUID, changes: dict[str, Any]) -> PostRecord:
        response = await self._request("PATCH", f"/posts/{post_id}", json=changes)
        return _validate(PostRecord, self._json(response))

    async def delete_post(self, post_id: UUID) -> None:
        await self._request("DELETE", f"/posts/{post_id}")

    async def insert_like(self, post_id: UUID) -> LikeRecord:
        response = await self._request("POST", f"/posts/{post_id}/likes")
        return _validate(LikeRecord, self._json(response))

    async def delete_like(self, post_id: UUID) -> None:
        await self._request("DELETE", f"/posts/{post_id}/likes")

    async def insert_comment(self, post_id: UUID, content: str) -> CommentRecord:
        response = await self._request("POST", f"/posts/{post_id}/comments", json={"content": content})
        return _validate(CommentRecord, self._json(response))

    # Storage

    async def upload_file(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        filename = path.rsplit("/", 1)[-1]
        response = await self._request(
            "POST",
            f"/storage/{bucket}/objects",
            data={"path": path},
            files={"file": (filename, data, content_type)},
        )
        payload = self._json(response)
        url = payload.get("public_url") if isinstance(payload, dict) else None
        if not isinstance(url, str) or not url:
            raise MalformedRecordError("Upload response did not include a public URL")
        return url

    # Realtime

    async def _dispatch(self, callback: ChangeCallback, line: str) -> None:
        try:
            event = ChangeEvent.model_validate_json(line)
        except ValidationError:
            logger.warning("Ignoring malformed change event: %r", line[:200])
            return
        try:
            result = callback(event)
            if inspect.isawaitable(result):
                await cast(Any, result)
        except Exception:  # pragma: no cover - best effort logging
            logger.exception("Change callback failed for %s %s", event.event, event.table)

    async def _listen(self, tables: list[str], callback: ChangeCallback) -> None:
        while True:
            try:
                async with self._client.stream(
                    "GET",
                    "/realtime/changes",
                    params={"table": tables},
                    headers=self._headers(),
                    timeout=httpx.Timeout(self._timeout, read=None),
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        raise BackendError(_error_message(response), status_code=response.status_code)
                    async for line in response.aiter_lines():
                        if line.strip():
                            await self._dispatch(callback, line)
            except (httpx.HTTPError, BackendError) as exc:
                logger.warning("Change stream interrupted (%s); reconnecting in %.1fs", exc, self._reconnect_delay)
            await asyncio.sleep(self._reconnect_delay)

    def subscribe(self, tables: Iterable[str], callback: ChangeCallback) -> Subscription:
        """Listen for changes on ``tables`` until the returned handle is unsubscribed.

        Must be called from a running event loop.
        """

        task = asyncio.get_running_loop().create_task(self._listen(list(tables), callback))
        return Subscription(task.cancel)


__all__ = ["HttpBackendClient"]
