"""Tests for composing and submitting posts."""
from __future__ import annotations

import asyncio

from conftest import make_post, make_profile, make_user
from edubridge.client.composer import Composer, ImageUpload, build_storage_path
from edubridge.client.feed import FeedReconciler


def _composer(fake_backend, notifier, *, posts=()):
    feed = FeedReconciler(fake_backend, notifier)
    feed.posts = list(posts)
    return Composer(fake_backend, feed, notifier, clock=lambda: 1700000000.5), feed


def test_unconfirmed_account_never_reaches_the_backend(fake_backend, notifier):
    composer, feed = _composer(fake_backend, notifier)
    viewer = make_user(confirmed=False)
    composer.content = "Hello"
    composer.image = ImageUpload("a.png", b"data", "image/png")

    assert asyncio.run(composer.submit(viewer, make_profile(viewer))) is None
    assert fake_backend.calls == []
    assert notifier.errors == ["Verify your email to share content"]
    assert composer.content == "Hello"


def test_missing_profile_or_viewer_blocks_submit(fake_backend, notifier):
    composer, _ = _composer(fake_backend, notifier)
    composer.content = "Hello"
    assert asyncio.run(composer.submit(None, None)) is None
    assert asyncio.run(composer.submit(make_user(), None)) is None
    assert fake_backend.calls == []
    assert notifier.errors == ["Sign in to share content", "Profile loading..."]


def test_presence_checks(fake_backend, notifier):
    composer, _ = _composer(fake_backend, notifier)
    viewer = make_user()
    profile = make_profile(viewer)

    composer.content = "   "
    assert asyncio.run(composer.submit(viewer, profile)) is None

    composer.post_type = "donation"
    composer.resource_title = "Desk lamp"
    composer.resource_contact = "me@example.org"
    assert asyncio.run(composer.submit(viewer, profile)) is None

    composer.resource_category = "furniture"
    assert asyncio.run(composer.submit(viewer, profile)) is None

    assert fake_backend.calls == []
    assert notifier.errors == [
        "Please write something to share",
        "Please fill in all resource details",
        "Please choose a valid resource category",
    ]


def test_wisdom_post_lands_first_with_link_and_image(fake_backend, notifier):
    author = make_user()
    existing = [make_post(author, minutes=5), make_post(author, minutes=2)]
    viewer = make_user()
    fake_backend.user = viewer
    profile = make_profile(viewer)
    composer, feed = _composer(fake_backend, notifier, posts=existing)

    composer.content = "Great notes at https://example.org/notes."
    composer.image = ImageUpload("my notes.png", b"png-bytes", "image/png")
    record = asyncio.run(composer.submit(viewer, profile))

    assert record is not None
    assert record.link_url == "https://example.org/notes"
    bucket, path, data, content_type = fake_backend.uploads[0]
    assert bucket == "post-images"
    assert path == f"{viewer.id}/1700000000500_my_notes.png"
    assert record.image_url == f"https://cdn.example.org/post-images/{path}"
    assert record.profiles == profile

    assert feed.posts[0].id == record.id
    assert [post.id for post in feed.posts[1:]] == [post.id for post in existing]
    assert composer.content == ""
    assert composer.image is None
    assert notifier.successes == ["Wisdom shared!"]


def test_donation_post_has_no_content(fake_backend, notifier):
    viewer = make_user()
    fake_backend.user = viewer
    composer, feed = _composer(fake_backend, notifier)
    composer.post_type = "donation"
    composer.content = "leftover text"
    composer.resource_title = "Chemistry set"
    composer.resource_category = "stationery"
    composer.resource_contact = "call 555"

    record = asyncio.run(composer.submit(viewer, make_profile(viewer, role="donor")))

    assert record is not None
    assert record.content is None
    assert record.resource_title == "Chemistry set"
    assert record.link_url is None
    assert notifier.successes == ["Resource posted!"]
    assert composer.post_type == "wisdom"


def test_failed_insert_keeps_draft_and_feed(fake_backend, notifier):
    viewer = make_user()
    fake_backend.user = viewer
    composer, feed = _composer(fake_backend, notifier)
    composer.content = "Keep me"
    fake_backend.fail("insert_post")

    assert asyncio.run(composer.submit(viewer, make_profile(viewer))) is None
    assert feed.posts == []
    assert composer.content == "Keep me"
    assert notifier.errors == ["Failed to create post"]
    assert composer.submitting is False


def test_failed_upload_aborts_before_insert(fake_backend, notifier):
    viewer = make_user()
    fake_backend.user = viewer
    composer, _ = _composer(fake_backend, notifier)
    composer.content = "With picture"
    composer.image = ImageUpload("a.png", b"x", "image/png")
    fake_backend.fail("upload_file")

    assert asyncio.run(composer.submit(viewer, make_profile(viewer))) is None
    assert "insert_post" not in fake_backend.calls


def test_overlong_link_is_dropped_instead_of_blocking_the_post(fake_backend, notifier):
    viewer = make_user()
    fake_backend.user = viewer
    composer, feed = _composer(fake_backend, notifier)
    long_link = "https://example.org/" + "a" * 2100
    composer.content = f"Worth reading {long_link}"
    composer.image = ImageUpload("a.png", b"x", "image/png")

    record = asyncio.run(composer.submit(viewer, make_profile(viewer)))

    assert record is not None
    assert record.link_url is None
    assert record.content == f"Worth reading {long_link}"
    assert len(fake_backend.uploads) == 1
    assert feed.posts[0].id == record.id


def test_invalid_draft_is_rejected_before_any_upload(fake_backend, notifier):
    viewer = make_user()
    fake_backend.user = viewer
    composer, _ = _composer(fake_backend, notifier)
    composer.content = "x" * 5001
    composer.image = ImageUpload("a.png", b"x", "image/png")

    assert asyncio.run(composer.submit(viewer, make_profile(viewer))) is None
    assert fake_backend.calls == []
    assert fake_backend.uploads == []
    assert notifier.errors == ["Please check the post details"]
    assert composer.content == "x" * 5001


def test_storage_path_is_sanitised():
    viewer = make_user()
    assert build_storage_path(viewer.id, "../../etc/passwd", 5) == f"{viewer.id}/5_passwd"
    assert build_storage_path(viewer.id, "photo (1).JPG", 7) == f"{viewer.id}/7_photo_1_.JPG"
    assert build_storage_path(viewer.id, "...", 9) == f"{viewer.id}/9_image"
