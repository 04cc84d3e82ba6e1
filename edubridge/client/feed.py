"""Local feed state kept consistent with the data platform.

Two drivers change ``FeedReconciler.posts``: local mutations, applied
optimistically and rolled back per post on failure, and change
notifications, each of which triggers a full refetch. Fetches are never
cancelled, so a slow fetch may land after a newer one.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable
from uuid import UUID, uuid4

from pydantic import ValidationError

from ..access import can_edit_post, claim_denial_reason, visible_contact
from ..constants import POST_TYPE_DONATION, TABLE_COMMENTS, TABLE_LIKES, TABLE_POSTS
from ..schemas import AuthUser, ChangeEvent, CommentRecord, LikeRecord, PostRecord, PostUpdate, ProfileRecord
from .backend import BackendClient, Subscription
from .errors import BackendNotConfiguredError, EdubridgeClientError
from .notifier import Notifier

logger = logging.getLogger(__name__)

FEED_TABLES = (TABLE_POSTS, TABLE_LIKES, TABLE_COMMENTS)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(post: PostRecord) -> float:
    created = post.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.timestamp()


class FeedReconciler:
    def __init__(
        self,
        backend: BackendClient,
        notifier: Notifier,
        *,
        tables: Iterable[str] = FEED_TABLES,
    ) -> None:
        self.backend = backend
        self.notifier = notifier
        self.tables = tuple(tables)
        self.posts: list[PostRecord] = []
        self.viewer: AuthUser | None = None
        self.profile: ProfileRecord | None = None
        self.loading = False
        self.configuration_required = False
        self._started = False
        self._subscription: Subscription | None = None

    # Lifecycle

    async def start(self, viewer: AuthUser | None, profile: ProfileRecord | None) -> None:
        """Fetch the whole feed and (re)subscribe to change notifications."""

        self.viewer = viewer
        self.profile = profile
        self._started = True
        await self.refresh()
        self._resubscribe()

    async def set_viewer(self, viewer: AuthUser | None, profile: ProfileRecord | None) -> None:
        previous = self.viewer.id if self.viewer is not None else None
        current = viewer.id if viewer is not None else None
        if self._started and previous == current:
            self.viewer = viewer
            self.profile = profile
            return
        await self.start(viewer, profile)

    def _resubscribe(self) -> None:
        self._unsubscribe()
        try:
            self._subscription = self.backend.subscribe(self.tables, self._on_change)
        except BackendNotConfiguredError:
            self.configuration_required = True
        except EdubridgeClientError:
            logger.exception("Unable to subscribe to feed changes")

    def _unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def _on_change(self, event: ChangeEvent) -> None:
        logger.debug("Refreshing feed after %s on %s", event.event, event.table)
        await self.refresh()

    def close(self) -> None:
        self._unsubscribe()
        self._started = False

    async def refresh(self) -> bool:
        """Replace the local list with a full fetch; keep it untouched on failure."""

        self.loading = True
        try:
            posts = await self.backend.fetch_posts()
        except BackendNotConfiguredError:
            self.configuration_required = True
            return False
        except EdubridgeClientError as exc:
            logger.warning("Feed refresh failed: %s", exc)
            self.notifier.error("Failed to load posts")
            return False
        finally:
            self.loading = False

        self.configuration_required = False
        self.posts = sorted(posts, key=_sort_key, reverse=True)
        return True

    # Lookups

    def _index_of(self, post_id: UUID) -> int | None:
        for index, post in enumerate(self.posts):
            if post.id == post_id:
                return index
        return None

    def get_post(self, post_id: UUID) -> PostRecord | None:
        index = self._index_of(post_id)
        return self.posts[index] if index is not None else None

    def _restore(self, snapshot: PostRecord) -> None:
        index = self._index_of(snapshot.id)
        if index is not None:
            self.posts[index] = snapshot

    def _require_confirmed(self, action: str) -> AuthUser | None:
        if self.viewer is None:
            self.notifier.error(f"Please sign in to {action}")
            return None
        if not self.viewer.email_confirmed:
            self.notifier.error(f"Please verify your email to {action}")
            return None
        return self.viewer

    # Mutations

    async def toggle_like(self, post_id: UUID) -> bool:
        viewer = self._require_confirmed("like posts")
        if viewer is None:
            return False
        index = self._index_of(post_id)
        if index is None:
            return False

        snapshot = self.posts[index]
        liked = snapshot.liked_by(viewer.id)
        if liked:
            likes = [like for like in snapshot.likes if like.user_id != viewer.id]
        else:
            placeholder = LikeRecord(id=uuid4(), post_id=post_id, user_id=viewer.id, created_at=_now())
            likes = [*snapshot.likes, placeholder]
        self.posts[index] = snapshot.model_copy(update={"likes": likes})

        try:
            if liked:
                await self.backend.delete_like(post_id)
            else:
                confirmed = await self.backend.insert_like(post_id)
                current = self.get_post(post_id)
                if current is not None:
                    swapped = [confirmed if like.id == placeholder.id else like for like in current.likes]
                    self._restore(current.model_copy(update={"likes": swapped}))
        except EdubridgeClientError as exc:
            logger.warning("Like toggle on %s failed: %s", post_id, exc)
            self._restore(snapshot)
            self.notifier.error("Failed to update like")
            return False
        return True

    async def add_comment(self, post_id: UUID, text: str) -> CommentRecord | None:
        content = (text or "").strip()
        if not content:
            return None
        viewer = self._require_confirmed("comment")
        if viewer is None:
            return None
        index = self._index_of(post_id)
        if index is None:
            return None

        snapshot = self.posts[index]
        pending = CommentRecord(
            id=uuid4(),
            post_id=post_id,
            user_id=viewer.id,
            content=content,
            created_at=_now(),
            profiles=self.profile,
            pending=True,
        )
        self.posts[index] = snapshot.model_copy(update={"comments": [pending, *snapshot.comments]})

        try:
            comment = await self.backend.insert_comment(post_id, content)
        except EdubridgeClientError as exc:
            logger.warning("Comment on %s failed: %s", post_id, exc)
            self._restore(snapshot)
            self.notifier.error("Failed to add comment")
            return None

        current = self.get_post(post_id)
        if current is not None:
            stored = comment if comment.profiles is not None else comment.model_copy(update={"profiles": self.profile})
            swapped = [stored if item.id == pending.id else item for item in current.comments]
            self._restore(current.model_copy(update={"comments": swapped}))
        await self.refresh()
        return comment

    async def edit_post(self, post_id: UUID, changes: dict[str, Any]) -> PostRecord | None:
        snapshot = self.get_post(post_id)
        if snapshot is None:
            return None
        if not can_edit_post(self.viewer, snapshot):
            self.notifier.error("You can only edit your own posts")
            return None
        try:
            update = PostUpdate.model_validate(changes).model_dump(exclude_unset=True)
        except ValidationError:
            self.notifier.error("Please check the post details")
            return None
        if not update:
            return snapshot

        try:
            optimistic = PostRecord.model_validate({**snapshot.model_dump(), **update})
        except ValidationError:
            self.notifier.error("Please check the post details")
            return None
        self._restore(optimistic)

        try:
            updated = await self.backend.update_post(post_id, update)
        except EdubridgeClientError as exc:
            logger.warning("Editing %s failed: %s", post_id, exc)
            self._restore(snapshot)
            self.notifier.error("Failed to update post")
            return None

        self._restore(updated)
        self.notifier.success("Post updated")
        return updated

    async def delete_post(self, post_id: UUID) -> bool:
        index = self._index_of(post_id)
        if index is None:
            return False
        snapshot = self.posts[index]
        if not can_edit_post(self.viewer, snapshot):
            self.notifier.error("You can only delete your own posts")
            return False

        del self.posts[index]
        try:
            await self.backend.delete_post(post_id)
        except EdubridgeClientError as exc:
            logger.warning("Deleting %s failed: %s", post_id, exc)
            if self._index_of(post_id) is None:
                self.posts.insert(min(index, len(self.posts)), snapshot)
            self.notifier.error("Failed to delete post")
            return False

        self.notifier.success("Post deleted")
        return True

    def add_local_post(self, post: PostRecord) -> bool:
        """Prepend a server-confirmed post without reordering the rest."""

        if self._index_of(post.id) is not None:
            return False
        self.posts.insert(0, post)
        return True

    # Resources

    def contact_for(self, post: PostRecord) -> str | None:
        return visible_contact(post, self.viewer, self.profile)

    def claim_resource(self, post_id: UUID) -> str | None:
        """Reveal the donor contact to an eligible student; returns it on success."""

        post = self.get_post(post_id)
        if post is None or post.post_type != POST_TYPE_DONATION:
            return None
        reason = claim_denial_reason(self.viewer, self.profile)
        if reason is not None:
            self.notifier.error(reason)
            return None
        if not post.resource_contact:
            self.notifier.error("Contact details are not available for this resource")
            return None
        self.notifier.success(f"Contact the donor: {post.resource_contact}")
        return post.resource_contact


__all__ = ["FEED_TABLES", "FeedReconciler"]
