"""Business logic for posts, likes and comments."""
from __future__ import annotations

import logging
from typing import cast
from uuid import UUID

from fastapi import HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..access import can_view_contact
from ..config import get_settings
from ..constants import POST_TYPE_DONATION, POST_TYPE_WISDOM
from ..models import Comment, Like, Post, Profile
from ..schemas import (
    AuthUser,
    CommentCreate,
    CommentRecord,
    LikeRecord,
    PostCreate,
    PostRecord,
    PostUpdate,
    ProfileRecord,
)
from .link_preview_service import fetch_link_preview

logger = logging.getLogger(__name__)

_DONATION_FIELDS = ("resource_title", "resource_category", "resource_contact")


def _feed_statement():
    return select(Post).options(
        selectinload(Post.author),
        selectinload(Post.likes),
        selectinload(Post.comments).selectinload(Comment.user),
    )


def _get_post_or_404(db: Session, post_id: UUID) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


def _contact_hidden_for(viewer: Profile | None) -> bool:
    if not get_settings().redact_resource_contacts:
        return False
    if viewer is None:
        return True
    return not can_view_contact(AuthUser.model_validate(viewer), ProfileRecord.model_validate(viewer))


def serialize_post(post: Post, *, hide_contact: bool = False) -> PostRecord:
    """Shape a loaded ``Post`` into the joined feed record."""

    comments = sorted(post.comments, key=lambda comment: comment.created_at, reverse=True)
    return PostRecord(
        id=post.id,
        user_id=post.user_id,
        post_type=post.post_type,
        content=post.content,
        resource_title=post.resource_title,
        resource_category=post.resource_category,
        resource_contact=None if hide_contact else post.resource_contact,
        image_url=post.image_url,
        link_url=post.link_url,
        link_title=post.link_title,
        link_description=post.link_description,
        link_image=post.link_image,
        created_at=post.created_at,
        profiles=ProfileRecord.model_validate(post.author) if post.author is not None else None,
        likes=[LikeRecord.model_validate(like) for like in post.likes],
        comments=[
            CommentRecord(
                id=comment.id,
                post_id=comment.post_id,
                user_id=comment.user_id,
                content=comment.content,
                created_at=comment.created_at,
                profiles=ProfileRecord.model_validate(comment.user) if comment.user is not None else None,
            )
            for comment in comments
        ],
    )


def list_feed_records(db: Session, *, viewer: Profile | None = None, limit: int | None = None) -> list[PostRecord]:
    """Return every post newest first, joined with author, likes and comments."""

    statement = _feed_statement().order_by(Post.created_at.desc())
    if limit is not None:
        statement = statement.limit(limit)
    hide_contact = _contact_hidden_for(viewer)
    return [serialize_post(post, hide_contact=hide_contact) for post in db.scalars(statement).all()]


def get_post_record(db: Session, post_id: UUID, *, viewer: Profile | None = None) -> PostRecord:
    post = db.scalar(_feed_statement().where(Post.id == post_id))
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return serialize_post(post, hide_contact=_contact_hidden_for(viewer))


async def create_post_record(db: Session, *, author: Profile, payload: PostCreate) -> Post:
    """Create and persist a new post for ``author``."""

    data = payload.model_dump()
    settings = get_settings()
    if data["link_url"] and not data["link_title"] and settings.link_previews_enabled:
        preview = await run_in_threadpool(fetch_link_preview, data["link_url"], timeout=settings.link_preview_timeout)
        if preview is not None:
            data["link_title"] = preview.title
            data["link_description"] = data["link_description"] or preview.description
            data["link_image"] = data["link_image"] or preview.image

    post = Post(user_id=author.id, **data)
    try:
        db.add(post)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to create post for %s", author.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create post") from exc

    db.refresh(post)
    return post


def update_post_record(db: Session, *, post_id: UUID, requester_id: UUID, payload: PostUpdate) -> Post:
    post = _get_post_or_404(db, post_id)
    if post.user_id != requester_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to edit this post")

    update_data = payload.model_dump(exclude_unset=True)
    if post.post_type == POST_TYPE_WISDOM:
        if any(name in update_data for name in _DONATION_FIELDS):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Wisdom posts cannot carry resource fields")
        if "content" in update_data and not update_data["content"]:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Content cannot be empty")
    elif post.post_type == POST_TYPE_DONATION:
        if "content" in update_data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Donation posts cannot carry free-text content")
        if any(name in update_data and not update_data[name] for name in _DONATION_FIELDS):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Resource fields cannot be empty")

    changed = False
    for field, value in update_data.items():
        if getattr(post, field) != value:
            setattr(post, field, value)
            changed = True

    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes detected")

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update post") from exc

    db.refresh(post)
    return post


def delete_post_record(db: Session, *, post_id: UUID, requester_id: UUID) -> None:
    post = _get_post_or_404(db, post_id)
    if post.user_id != requester_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this post")

    try:
        db.delete(post)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete post") from exc


def add_like(db: Session, *, post_id: UUID, user_id: UUID) -> Like:
    _get_post_or_404(db, post_id)
    existing = db.scalar(select(Like.id).where(Like.post_id == post_id, Like.user_id == user_id))
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Post already liked")

    like = Like(post_id=post_id, user_id=user_id)
    try:
        db.add(like)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Post already liked") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update like") from exc

    db.refresh(like)
    return like


def remove_like(db: Session, *, post_id: UUID, user_id: UUID) -> UUID:
    """Delete the viewer's like; returns the removed like id."""

    like = db.scalar(select(Like).where(Like.post_id == post_id, Like.user_id == user_id))
    if like is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Like not found")

    like_id = cast(UUID, like.id)
    try:
        db.delete(like)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update like") from exc
    return like_id


def create_comment(db: Session, *, post_id: UUID, author: Profile, payload: CommentCreate) -> CommentRecord:
    _get_post_or_404(db, post_id)

    comment = Comment(post_id=post_id, user_id=author.id, content=payload.content)
    try:
        db.add(comment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to add comment") from exc

    db.refresh(comment)
    return CommentRecord(
        id=comment.id,
        post_id=comment.post_id,
        user_id=comment.user_id,
        content=comment.content,
        created_at=comment.created_at,
        profiles=ProfileRecord.model_validate(author),
    )


__all__ = [
    "serialize_post",
    "list_feed_records",
    "get_post_record",
    "create_post_record",
    "update_post_record",
    "delete_post_record",
    "add_like",
    "remove_like",
    "create_comment",
]
