"""Project-wide constant values."""
from __future__ import annotations

ROLE_STUDENT = "student"
ROLE_DONOR = "donor"

VERIFICATION_UNVERIFIED = "unverified"
VERIFICATION_PENDING = "pending"
VERIFICATION_VERIFIED = "verified"

POST_TYPE_WISDOM = "wisdom"
POST_TYPE_DONATION = "donation"

RESOURCE_CATEGORIES = (
    "books",
    "stationery",
    "electronics",
    "courses",
    "mentorship",
    "scholarships",
    "internships",
    "software",
    "other",
)

BUCKET_POST_IMAGES = "post-images"
BUCKET_PROFILE_PICTURES = "profile-pictures"
STORAGE_BUCKETS = (BUCKET_POST_IMAGES, BUCKET_PROFILE_PICTURES)

TABLE_PROFILES = "profiles"
TABLE_POSTS = "posts"
TABLE_LIKES = "likes"
TABLE_COMMENTS = "comments"
REALTIME_TABLES = (TABLE_PROFILES, TABLE_POSTS, TABLE_LIKES, TABLE_COMMENTS)

ADMIN_TOKEN_HEADER = "x-edubridge-admin-token"

__all__ = [
    "ROLE_STUDENT",
    "ROLE_DONOR",
    "VERIFICATION_UNVERIFIED",
    "VERIFICATION_PENDING",
    "VERIFICATION_VERIFIED",
    "POST_TYPE_WISDOM",
    "POST_TYPE_DONATION",
    "RESOURCE_CATEGORIES",
    "BUCKET_POST_IMAGES",
    "BUCKET_PROFILE_PICTURES",
    "STORAGE_BUCKETS",
    "TABLE_PROFILES",
    "TABLE_POSTS",
    "TABLE_LIKES",
    "TABLE_COMMENTS",
    "REALTIME_TABLES",
    "ADMIN_TOKEN_HEADER",
]
