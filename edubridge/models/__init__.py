"""Convenience exports for ORM models."""
from .post import Comment, Like, Post
from .profile import Profile
from .stored_object import StoredObject

__all__ = [
    "Comment",
    "Like",
    "Post",
    "Profile",
    "StoredObject",
]
