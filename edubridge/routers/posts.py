"""Feed, post, like and comment routes."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..constants import TABLE_COMMENTS, TABLE_LIKES, TABLE_POSTS
from ..database import get_session
from ..models import Profile
from ..schemas import CommentCreate, CommentRecord, LikeRecord, PostCreate, PostFeedResponse, PostRecord, PostUpdate
from ..services import (
    add_like,
    create_comment,
    create_post_record,
    delete_post_record,
    get_optional_user,
    get_post_record,
    list_feed_records,
    publish_change,
    remove_like,
    require_confirmed_user,
    update_post_record,
)

router = APIRouter(prefix="/posts", tags=["posts"])

logger = logging.getLogger(__name__)


@router.get("/feed", response_model=PostFeedResponse)
async def feed_endpoint(
    limit: int | None = Query(None, ge=1, le=500),
    db: Session = Depends(get_session),
    viewer: Profile | None = Depends(get_optional_user),
) -> PostFeedResponse:
    return PostFeedResponse(items=list_feed_records(db, viewer=viewer, limit=limit))


@router.post("/", response_model=PostRecord, status_code=status.HTTP_201_CREATED)
async def create_post_endpoint(
    payload: PostCreate,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(require_confirmed_user),
) -> PostRecord:
    post = await create_post_record(db, author=current_user, payload=payload)
    logger.info("Post %s (%s) created by %s", post.id, post.post_type, current_user.id)
    await publish_change(TABLE_POSTS, "INSERT", post.id)
    return get_post_record(db, post.id, viewer=current_user)


@router.patch("/{post_id}", response_model=PostRecord)
async def update_post_endpoint(
    post_id: UUID,
    payload: PostUpdate,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(require_confirmed_user),
) -> PostRecord:
    update_post_record(db, post_id=post_id, requester_id=current_user.id, payload=payload)
    await publish_change(TABLE_POSTS, "UPDATE", post_id)
    return get_post_record(db, post_id, viewer=current_user)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(require_confirmed_user),
) -> Response:
    delete_post_record(db, post_id=post_id, requester_id=current_user.id)
    await publish_change(TABLE_POSTS, "DELETE", post_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/likes", response_model=LikeRecord, status_code=status.HTTP_201_CREATED)
async def like_post_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(require_confirmed_user),
) -> LikeRecord:
    like = add_like(db, post_id=post_id, user_id=current_user.id)
    await publish_change(TABLE_LIKES, "INSERT", like.id)
    return LikeRecord.model_validate(like)


@router.delete("/{post_id}/likes", status_code=status.HTTP_204_NO_CONTENT)
async def unlike_post_endpoint(
    post_id: UUID,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(require_confirmed_user),
) -> Response:
    like_id = remove_like(db, post_id=post_id, user_id=current_user.id)
    await publish_change(TABLE_LIKES, "DELETE", like_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/comments", response_model=CommentRecord, status_code=status.HTTP_201_CREATED)
async def comment_endpoint(
    post_id: UUID,
    payload: CommentCreate,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(require_confirmed_user),
) -> CommentRecord:
    comment = create_comment(db, post_id=post_id, author=current_user, payload=payload)
    await publish_change(TABLE_COMMENTS, "INSERT", comment.id)
    return comment


__all__ = ["router"]
