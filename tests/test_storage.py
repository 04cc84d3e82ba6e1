"""Integration tests for image uploads into the public buckets."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import urlparse

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete, select

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_edubridge.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from edubridge.config import get_settings  # noqa: E402
from edubridge.database import Base, SessionLocal, engine  # noqa: E402
from edubridge.main import app  # noqa: E402
from edubridge.models import Comment, Like, Post, Profile, StoredObject  # noqa: E402
from edubridge.services import storage_service  # noqa: E402
from edubridge.services.storage_service import LocalStorageBackend, S3StorageBackend  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database(monkeypatch) -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(Comment))
        session.execute(delete(Like))
        session.execute(delete(Post))
        session.execute(delete(StoredObject))
        session.execute(delete(Profile))
        session.commit()
    monkeypatch.setattr(get_settings(), "email_confirmation_required", False)
    yield


@pytest.fixture
def local_backend(monkeypatch) -> LocalStorageBackend:
    backend = LocalStorageBackend(Path(get_settings().storage_root), "http://testserver")
    monkeypatch.setattr(storage_service, "get_storage_backend", lambda: backend)
    return backend


@pytest.fixture
def member() -> Iterator[tuple[TestClient, dict[str, str], str]]:
    with TestClient(app) as client:
        body = client.post("/auth/signup", json={"email": "uploader@example.org", "password": "secret1"}).json()
        yield client, {"Authorization": f"Bearer {body['access_token']}"}, body["user"]["id"]


def _upload(client: TestClient, headers: dict[str, str], bucket: str, path: str, *, data: bytes = PNG_BYTES, content_type: str = "image/png"):
    return client.post(
        f"/storage/{bucket}/objects",
        data={"path": path},
        files={"file": ("photo.png", data, content_type)},
        headers=headers,
    )


def test_upload_stores_object_and_serves_it_publicly(member, local_backend):
    client, headers, user_id = member
    path = f"{user_id}/1700000000000_photo.png"

    response = _upload(client, headers, "post-images", path)
    assert response.status_code == 201
    body = response.json()
    assert body["bucket"] == "post-images"
    assert body["path"] == path
    assert body["size"] == len(PNG_BYTES)
    assert body["public_url"].endswith(f"/storage/public/post-images/{path}")

    public = client.get(urlparse(body["public_url"]).path)
    assert public.status_code == 200
    assert public.content == PNG_BYTES

    with SessionLocal() as session:
        stored = session.scalar(select(StoredObject).where(StoredObject.path == path))
        assert stored is not None
        assert str(stored.owner_id) == user_id


def test_duplicate_path_is_rejected(member, local_backend):
    client, headers, user_id = member
    path = f"{user_id}/1700000000001_photo.png"
    assert _upload(client, headers, "profile-pictures", path).status_code == 201
    duplicate = _upload(client, headers, "profile-pictures", path)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "The resource already exists"


def test_paths_must_live_under_the_uploader_id(member, local_backend):
    client, headers, _ = member
    assert _upload(client, headers, "post-images", "someone-else/1_photo.png").status_code == 403


def test_invalid_requests_are_rejected(member, local_backend, monkeypatch):
    client, headers, user_id = member
    assert _upload(client, headers, "documents", f"{user_id}/a.png").status_code == 404
    assert _upload(client, headers, "post-images", f"{user_id}/../escape.png").status_code == 400
    assert _upload(client, headers, "post-images", f"{user_id}/notes.txt", content_type="text/plain").status_code == 415

    monkeypatch.setattr(get_settings(), "storage_max_upload_bytes", 4)
    assert _upload(client, headers, "post-images", f"{user_id}/big.png").status_code == 413


def test_upload_requires_a_session(local_backend):
    with TestClient(app) as client:
        assert _upload(client, {}, "post-images", "anyone/a.png").status_code == 401


def test_markup_disguised_as_an_image_is_never_stored(member, local_backend):
    client, headers, user_id = member
    markup = b"<html><script>alert(document.cookie)</script></html>"

    response = _upload(client, headers, "post-images", f"{user_id}/evil.html", data=markup)
    assert response.status_code == 415
    assert _upload(client, headers, "post-images", f"{user_id}/evil.svg", data=markup).status_code == 415
    assert _upload(client, headers, "post-images", f"{user_id}/pic", data=markup).status_code == 415
    mismatched = _upload(client, headers, "post-images", f"{user_id}/pic.png", data=markup, content_type="text/html")
    assert mismatched.status_code == 415

    assert client.get(f"/storage/public/post-images/{user_id}/evil.html").status_code == 404
    assert not (Path(get_settings().storage_root) / "post-images" / user_id / "evil.html").exists()
    with SessionLocal() as session:
        assert session.scalar(select(StoredObject)) is None


def test_extension_decides_the_stored_content_type(member, local_backend):
    client, headers, user_id = member

    response = _upload(client, headers, "profile-pictures", f"{user_id}/avatar.JPG", content_type="image/jpg")
    assert response.status_code == 201
    assert response.json()["content_type"] == "image/jpeg"
    assert _upload(client, headers, "profile-pictures", f"{user_id}/avatar.gif", content_type="image/png").status_code == 415


def test_unconfirmed_accounts_cannot_upload(local_backend, monkeypatch):
    monkeypatch.setattr(get_settings(), "email_confirmation_required", True)
    with TestClient(app) as client:
        body = client.post("/auth/signup", json={"email": "pending@example.org", "password": "secret1"}).json()
        assert body["user"]["email_confirmed_at"] is None
        headers = {"Authorization": f"Bearer {body['access_token']}"}

        response = _upload(client, headers, "post-images", f"{body['user']['id']}/a.png")
        assert response.status_code == 403
        assert response.json()["detail"] == "Email not confirmed"


class _RecordingS3:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    def put_object(self, **kwargs: Any) -> None:
        self.calls.append(kwargs)


def test_s3_backend_keys_objects_by_bucket():
    client = _RecordingS3()
    backend = S3StorageBackend(client, "edubridge-media", "https://cdn.example.org/")  # type: ignore[arg-type]

    url = backend.put("post-images", "abc/1_photo.png", PNG_BYTES, "image/png")

    assert url == "https://cdn.example.org/post-images/abc/1_photo.png"
    assert client.calls[0]["Bucket"] == "edubridge-media"
    assert client.calls[0]["Key"] == "post-images/abc/1_photo.png"
    assert client.calls[0]["ContentType"] == "image/png"
