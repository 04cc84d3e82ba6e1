"""Convenience exports for schema layer."""
from .auth import AuthSession, AuthUser, ConfirmationResponse, SignInRequest, SignUpRequest
from .posts import (
    CommentCreate,
    CommentRecord,
    LikeRecord,
    PostCreate,
    PostFeedResponse,
    PostRecord,
    PostUpdate,
)
from .profiles import ProfileRecord, ProfileUpdateRequest, VerificationUpdateRequest
from .realtime import ChangeEvent
from .storage import StoredObjectResponse

__all__ = [
    "AuthSession",
    "AuthUser",
    "ConfirmationResponse",
    "SignInRequest",
    "SignUpRequest",
    "CommentCreate",
    "CommentRecord",
    "LikeRecord",
    "PostCreate",
    "PostFeedResponse",
    "PostRecord",
    "PostUpdate",
    "ProfileRecord",
    "ProfileUpdateRequest",
    "VerificationUpdateRequest",
    "ChangeEvent",
    "StoredObjectResponse",
]
