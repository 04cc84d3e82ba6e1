"""Post composition: draft fields, image upload, link extraction, submit."""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable
from uuid import UUID

from pydantic import ValidationError

from ..access import can_post, posting_restriction_message
from ..constants import BUCKET_POST_IMAGES, POST_TYPE_DONATION, POST_TYPE_WISDOM, RESOURCE_CATEGORIES
from ..schemas import AuthUser, PostCreate, PostRecord, ProfileRecord
from ..schemas.posts import LINK_URL_MAX_LENGTH
from .backend import BackendClient
from .errors import EdubridgeClientError
from .feed import FeedReconciler
from .links import extract_first_url
from .notifier import Notifier

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    data: bytes
    content_type: str


def build_storage_path(user_id: UUID, filename: str, millis: int) -> str:
    """Object path ``<user_id>/<millis>_<filename>`` with a filesystem-safe name."""

    safe = _UNSAFE_FILENAME_CHARS.sub("_", filename.rsplit("/", 1)[-1]).strip("._") or "image"
    return f"{user_id}/{millis}_{safe}"


class Composer:
    def __init__(
        self,
        backend: BackendClient,
        feed: FeedReconciler,
        notifier: Notifier,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.feed = feed
        self.notifier = notifier
        self._clock = clock
        self.submitting = False
        self.reset()

    def reset(self) -> None:
        self.post_type = POST_TYPE_WISDOM
        self.content = ""
        self.resource_title = ""
        self.resource_category = ""
        self.resource_contact = ""
        self.image: ImageUpload | None = None

    def _missing_fields_message(self) -> str | None:
        if self.post_type == POST_TYPE_WISDOM:
            if not self.content.strip():
                return "Please write something to share"
            return None
        if not (self.resource_title.strip() and self.resource_contact.strip() and self.resource_category.strip()):
            return "Please fill in all resource details"
        if self.resource_category not in RESOURCE_CATEGORIES:
            return "Please choose a valid resource category"
        return None

    def _build_payload(self) -> PostCreate:
        if self.post_type == POST_TYPE_DONATION:
            return PostCreate(
                post_type=POST_TYPE_DONATION,
                resource_title=self.resource_title,
                resource_category=self.resource_category,
                resource_contact=self.resource_contact,
            )
        link_url = extract_first_url(self.content)
        if link_url is not None and len(link_url) > LINK_URL_MAX_LENGTH:
            link_url = None
        return PostCreate(post_type=POST_TYPE_WISDOM, content=self.content, link_url=link_url)

    async def _upload_image(self, user_id: UUID) -> str | None:
        if self.image is None:
            return None
        path = build_storage_path(user_id, self.image.filename, int(self._clock() * 1000))
        return await self.backend.upload_file(BUCKET_POST_IMAGES, path, self.image.data, self.image.content_type)

    async def submit(self, viewer: AuthUser | None, profile: ProfileRecord | None) -> PostRecord | None:
        """Publish the draft; returns the stored post or ``None``.

        Denied or incomplete drafts never reach the backend. On failure the
        draft is kept so the author can retry.
        """

        if not can_post(viewer, profile):
            self.notifier.error(posting_restriction_message(viewer, profile))
            return None
        missing = self._missing_fields_message()
        if missing is not None:
            self.notifier.error(missing)
            return None
        if self.submitting:
            return None

        try:
            payload = self._build_payload()
        except ValidationError:
            self.notifier.error("Please check the post details")
            return None

        self.submitting = True
        try:
            image_url = await self._upload_image(viewer.id)
            if image_url is not None:
                payload = payload.model_copy(update={"image_url": image_url})
            record = await self.backend.insert_post(payload)
        except EdubridgeClientError as exc:
            logger.warning("Post submission failed: %s", exc)
            self.notifier.error("Failed to create post")
            return None
        finally:
            self.submitting = False

        if record.profiles is None:
            record = record.model_copy(update={"profiles": profile})
        self.feed.add_local_post(record)
        shared_type = self.post_type
        self.reset()
        self.notifier.success("Resource posted!" if shared_type == POST_TYPE_DONATION else "Wisdom shared!")
        return record


__all__ = ["Composer", "ImageUpload", "build_storage_path"]
