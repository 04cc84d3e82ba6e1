"""Shared test configuration and client-side fakes."""
from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable
from uuid import UUID, uuid4

import pytest

# Settings are cached on first import, so every module shares these values.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_edubridge.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("STORAGE_ROOT", str(Path(tempfile.gettempdir()) / "edubridge-test-storage"))
os.environ.setdefault("LINK_PREVIEWS_ENABLED", "false")

from edubridge.client.backend import Subscription  # noqa: E402
from edubridge.client.errors import BackendError  # noqa: E402
from edubridge.schemas import (  # noqa: E402
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

_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_user(*, confirmed: bool = True, user_id: UUID | None = None) -> AuthUser:
    uid = user_id or uuid4()
    return AuthUser(
        id=uid,
        email=f"{uid.hex[:8]}@example.org",
        email_confirmed_at=_BASE_TIME if confirmed else None,
    )


def make_profile(user: AuthUser, *, role: str = "student", verification_status: str = "unverified") -> ProfileRecord:
    return ProfileRecord(
        id=user.id,
        email=user.email,
        username=f"member_{user.id.hex[:6]}",
        role=role,
        verification_status=verification_status,
        created_at=_BASE_TIME,
    )


def make_post(author: AuthUser, *, minutes: int = 0, **fields: Any) -> PostRecord:
    data: dict[str, Any] = {"post_type": "wisdom", "content": "Study a little every day"}
    data.update(fields)
    return PostRecord(
        id=uuid4(),
        user_id=author.id,
        created_at=_BASE_TIME + timedelta(minutes=minutes),
        **data,
    )


class RecordingNotifier:
    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []
        self.infos: list[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def info(self, message: str) -> None:
        self.infos.append(message)


class FakeBackend:
    """In-memory ``BackendClient`` with per-method failure injection."""

    def __init__(self) -> None:
        self.posts: list[PostRecord] = []
        self.profiles: dict[UUID, ProfileRecord] = {}
        self.user: AuthUser | None = None
        self.calls: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.profile_misses = 0
        self.uploads: list[tuple[str, str, bytes, str]] = []
        self.subscriptions: list[tuple[tuple[str, ...], Any, Subscription]] = []
        self.session: AuthSession | None = None
        self.confirmation = ConfirmationResponse(sent=True, cooldown_seconds=60)

    def fail(self, method: str, exc: Exception | None = None) -> None:
        self.failures[method] = exc or BackendError("boom", status_code=500)

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.failures:
            raise self.failures[method]

    async def get_user(self) -> AuthUser | None:
        self._enter("get_user")
        return self.user

    async def sign_up(self, email: str, password: str, role: str) -> AuthSession:
        self._enter("sign_up")
        assert self.session is not None
        return self.session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        self._enter("sign_in")
        assert self.session is not None
        return self.session

    async def sign_out(self) -> None:
        self._enter("sign_out")

    async def resend_confirmation(self) -> ConfirmationResponse:
        self._enter("resend_confirmation")
        return self.confirmation

    async def fetch_profile(self, user_id: UUID) -> ProfileRecord | None:
        self._enter("fetch_profile")
        if self.profile_misses > 0:
            self.profile_misses -= 1
            return None
        return self.profiles.get(user_id)

    async def update_profile(self, changes: dict[str, Any]) -> ProfileRecord:
        self._enter("update_profile")
        assert self.user is not None
        current = self.profiles[self.user.id]
        updated = current.model_copy(update=changes)
        self.profiles[self.user.id] = updated
        return updated

    async def fetch_posts(self) -> list[PostRecord]:
        self._enter("fetch_posts")
        return [post.model_copy(deep=True) for post in self.posts]

    async def insert_post(self, payload: PostCreate) -> PostRecord:
        self._enter("insert_post")
        assert self.user is not None
        record = PostRecord(
            id=uuid4(),
            user_id=self.user.id,
            created_at=datetime.now(timezone.utc),
            **payload.model_dump(),
        )
        self.posts.insert(0, record)
        return record

    async def update_post(self, post_id: UUID, changes: dict[str, Any]) -> PostRecord:
        self._enter("update_post")
        for index, post in enumerate(self.posts):
            if post.id == post_id:
                self.posts[index] = post.model_copy(update=changes)
                return self.posts[index]
        raise BackendError("Post not found", status_code=404)

    async def delete_post(self, post_id: UUID) -> None:
        self._enter("delete_post")
        self.posts = [post for post in self.posts if post.id != post_id]

    async def insert_like(self, post_id: UUID) -> LikeRecord:
        self._enter("insert_like")
        assert self.user is not None
        like = LikeRecord(id=uuid4(), post_id=post_id, user_id=self.user.id, created_at=datetime.now(timezone.utc))
        for index, post in enumerate(self.posts):
            if post.id == post_id:
                self.posts[index] = post.model_copy(update={"likes": [*post.likes, like]})
        return like

    async def delete_like(self, post_id: UUID) -> None:
        self._enter("delete_like")
        assert self.user is not None
        for index, post in enumerate(self.posts):
            if post.id == post_id:
                likes = [like for like in post.likes if like.user_id != self.user.id]
                self.posts[index] = post.model_copy(update={"likes": likes})

    async def insert_comment(self, post_id: UUID, content: str) -> CommentRecord:
        self._enter("insert_comment")
        assert self.user is not None
        comment = CommentRecord(
            id=uuid4(),
            post_id=post_id,
            user_id=self.user.id,
            content=content,
            created_at=datetime.now(timezone.utc),
            profiles=self.profiles.get(self.user.id),
        )
        for index, post in enumerate(self.posts):
            if post.id == post_id:
                self.posts[index] = post.model_copy(update={"comments": [comment, *post.comments]})
        return comment

    async def upload_file(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        self._enter("upload_file")
        self.uploads.append((bucket, path, data, content_type))
        return f"https://cdn.example.org/{bucket}/{path}"

    def subscribe(self, tables: Iterable[str], callback: Any) -> Subscription:
        self._enter("subscribe")
        cancelled: list[bool] = []
        subscription = Subscription(lambda: cancelled.append(True))
        self.subscriptions.append((tuple(tables), callback, subscription))
        return subscription

    async def emit(self, table: str, event: str = "INSERT") -> None:
        for tables, callback, subscription in list(self.subscriptions):
            if subscription.active and table in tables:
                await callback(ChangeEvent(table=table, event=event))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
