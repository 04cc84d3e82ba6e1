"""Integration tests for the feed, posts, likes and comments."""
from __future__ import annotations

import os
from typing import Iterator
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete, update

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_edubridge.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from edubridge.config import get_settings  # noqa: E402
from edubridge.database import Base, SessionLocal, engine  # noqa: E402
from edubridge.main import app  # noqa: E402
from edubridge.models import Comment, Like, Post, Profile, StoredObject  # noqa: E402
from edubridge.routers import posts as posts_router_module  # noqa: E402
from edubridge.services import post_service  # noqa: E402
from edubridge.services.link_preview_service import LinkPreview  # noqa: E402

DONATION = {
    "post_type": "donation",
    "resource_title": "Calculus textbook",
    "resource_category": "books",
    "resource_contact": "donor@example.org",
}


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
def published(monkeypatch) -> list[tuple[str, str]]:
    events: list[tuple[str, str]] = []

    async def _record(table: str, event: str, record_id=None) -> None:
        events.append((table, event))

    monkeypatch.setattr(posts_router_module, "publish_change", _record)
    return events


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def _member(client: TestClient, name: str, *, role: str = "student") -> tuple[dict[str, str], str]:
    body = client.post(
        "/auth/signup",
        json={"email": f"{name}@example.org", "password": "secret1", "role": role, "username": name},
    ).json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user"]["id"]


def _verify(profile_id: str) -> None:
    with SessionLocal() as session:
        session.execute(update(Profile).where(Profile.id == UUID(profile_id)).values(verification_status="verified"))
        session.commit()


def test_feed_lists_posts_newest_first_with_author(client):
    headers, _ = _member(client, "writer")
    client.post("/posts/", json={"post_type": "wisdom", "content": "first"}, headers=headers)
    client.post("/posts/", json={"post_type": "wisdom", "content": "second"}, headers=headers)

    items = client.get("/posts/feed").json()["items"]
    assert [item["content"] for item in items] == ["second", "first"]
    assert items[0]["profiles"]["username"] == "writer"
    assert items[0]["likes"] == []
    assert items[0]["comments"] == []


def test_wisdom_and_donation_fields_never_mix(client):
    headers, _ = _member(client, "mixer", role="donor")
    mixed = client.post("/posts/", json={**DONATION, "content": "also text"}, headers=headers)
    assert mixed.status_code == 422
    wisdom_with_resource = client.post(
        "/posts/",
        json={"post_type": "wisdom", "content": "tip", "resource_title": "Laptop"},
        headers=headers,
    )
    assert wisdom_with_resource.status_code == 422
    incomplete = client.post("/posts/", json={"post_type": "donation", "resource_title": "Pens"}, headers=headers)
    assert incomplete.status_code == 422

    created = client.post("/posts/", json=DONATION, headers=headers)
    assert created.status_code == 201
    assert created.json()["content"] is None

    wisdom = client.post("/posts/", json={"post_type": "wisdom", "content": "tip"}, headers=headers).json()
    assert wisdom["resource_title"] is None
    assert wisdom["resource_contact"] is None


def test_like_then_unlike_restores_count(client, published):
    headers, user_id = _member(client, "fan")
    post = client.post("/posts/", json={"post_type": "wisdom", "content": "like me"}, headers=headers).json()
    assert len(post["likes"]) == 0

    liked = client.post(f"/posts/{post['id']}/likes", headers=headers)
    assert liked.status_code == 201
    assert liked.json()["user_id"] == user_id
    assert client.post(f"/posts/{post['id']}/likes", headers=headers).status_code == 409

    feed = client.get("/posts/feed").json()["items"]
    assert len(feed[0]["likes"]) == 1

    assert client.delete(f"/posts/{post['id']}/likes", headers=headers).status_code == 204
    assert client.delete(f"/posts/{post['id']}/likes", headers=headers).status_code == 404
    feed = client.get("/posts/feed").json()["items"]
    assert len(feed[0]["likes"]) == 0

    assert ("posts", "INSERT") in published
    assert ("likes", "INSERT") in published
    assert ("likes", "DELETE") in published


def test_comments_are_listed_newest_first_with_commenter(client, published):
    author_headers, _ = _member(client, "poster")
    reader_headers, _ = _member(client, "reader")
    post = client.post("/posts/", json={"post_type": "wisdom", "content": "discuss"}, headers=author_headers).json()

    client.post(f"/posts/{post['id']}/comments", json={"content": "early"}, headers=reader_headers)
    response = client.post(f"/posts/{post['id']}/comments", json={"content": "late"}, headers=author_headers)
    assert response.status_code == 201
    assert response.json()["profiles"]["username"] == "poster"

    comments = client.get("/posts/feed").json()["items"][0]["comments"]
    assert [comment["content"] for comment in comments] == ["late", "early"]
    assert comments[1]["profiles"]["username"] == "reader"
    assert ("comments", "INSERT") in published

    blank = client.post(f"/posts/{post['id']}/comments", json={"content": "   "}, headers=reader_headers)
    assert blank.status_code == 422


def test_only_the_author_may_edit_or_delete(client, published):
    author_headers, _ = _member(client, "owner")
    other_headers, _ = _member(client, "intruder")
    post = client.post("/posts/", json={"post_type": "wisdom", "content": "mine"}, headers=author_headers).json()

    assert client.patch(f"/posts/{post['id']}", json={"content": "hijacked"}, headers=other_headers).status_code == 403
    assert client.delete(f"/posts/{post['id']}", headers=other_headers).status_code == 403

    unchanged = client.patch(f"/posts/{post['id']}", json={"content": "mine"}, headers=author_headers)
    assert unchanged.status_code == 400
    assert unchanged.json()["detail"] == "No changes detected"

    wrong_shape = client.patch(f"/posts/{post['id']}", json={"resource_title": "Laptop"}, headers=author_headers)
    assert wrong_shape.status_code == 400

    edited = client.patch(f"/posts/{post['id']}", json={"content": "mine, revised"}, headers=author_headers)
    assert edited.status_code == 200
    assert edited.json()["content"] == "mine, revised"

    assert client.delete(f"/posts/{post['id']}", headers=author_headers).status_code == 204
    assert client.delete(f"/posts/{post['id']}", headers=author_headers).status_code == 404
    assert client.get("/posts/feed").json()["items"] == []
    assert ("posts", "UPDATE") in published
    assert ("posts", "DELETE") in published


def test_contacts_are_redacted_for_ineligible_viewers_when_enabled(client, monkeypatch):
    donor_headers, _ = _member(client, "giver", role="donor")
    student_headers, student_id = _member(client, "pupil")
    client.post("/posts/", json=DONATION, headers=donor_headers)

    # Payload parity is the default.
    assert client.get("/posts/feed").json()["items"][0]["resource_contact"] == "donor@example.org"

    monkeypatch.setattr(get_settings(), "redact_resource_contacts", True)
    assert client.get("/posts/feed").json()["items"][0]["resource_contact"] is None
    assert client.get("/posts/feed", headers=student_headers).json()["items"][0]["resource_contact"] is None
    assert client.get("/posts/feed", headers=donor_headers).json()["items"][0]["resource_contact"] == "donor@example.org"

    _verify(student_id)
    visible = client.get("/posts/feed", headers=student_headers).json()["items"][0]
    assert visible["resource_contact"] == "donor@example.org"


def test_link_preview_is_attached_to_new_posts(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "link_previews_enabled", True)
    monkeypatch.setattr(
        post_service,
        "fetch_link_preview",
        lambda url, timeout: LinkPreview(url=url, title="Free course", description="Learn", image="https://x.org/i.png"),
    )
    headers, _ = _member(client, "linker")
    response = client.post(
        "/posts/",
        json={"post_type": "wisdom", "content": "see https://x.org/course", "link_url": "https://x.org/course"},
        headers=headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["link_title"] == "Free course"
    assert body["link_description"] == "Learn"
    assert body["link_image"] == "https://x.org/i.png"


def test_feed_is_public_but_writes_need_a_session(client):
    assert client.get("/posts/feed").status_code == 200
    assert client.post("/posts/", json={"post_type": "wisdom", "content": "anon"}).status_code == 401
