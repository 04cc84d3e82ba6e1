"""Access rules shared by the service and the client.

Every rule is a pure function of the viewer identity (``AuthUser`` or
``None``), the viewer's profile (``ProfileRecord`` or ``None``) and, where it
matters, the post being looked at. Rules are evaluated in this order:

1. posting requires a signed-in viewer with a confirmed email and a loaded
   profile;
2. claiming a resource requires a confirmed, *verified student*; seeing the
   contact of a resource additionally admits donors, who are always treated
   as verified;
3. editing or deleting a post requires a confirmed viewer who authored it.
"""
from __future__ import annotations

from .constants import ROLE_DONOR, ROLE_STUDENT, VERIFICATION_PENDING, VERIFICATION_VERIFIED
from .schemas import AuthUser, PostRecord, ProfileRecord


def _confirmed(viewer: AuthUser | None) -> bool:
    return viewer is not None and viewer.email_confirmed


def is_treated_as_verified(profile: ProfileRecord | None) -> bool:
    """Donors count as verified regardless of their stored status."""

    if profile is None:
        return False
    return profile.role == ROLE_DONOR or profile.verification_status == VERIFICATION_VERIFIED


def can_post(viewer: AuthUser | None, profile: ProfileRecord | None) -> bool:
    return _confirmed(viewer) and profile is not None


def can_claim_resource(viewer: AuthUser | None, profile: ProfileRecord | None) -> bool:
    if not _confirmed(viewer) or profile is None:
        return False
    return profile.role == ROLE_STUDENT and profile.verification_status == VERIFICATION_VERIFIED


def can_view_contact(viewer: AuthUser | None, profile: ProfileRecord | None) -> bool:
    if not _confirmed(viewer) or profile is None:
        return False
    return is_treated_as_verified(profile)


def can_edit_post(viewer: AuthUser | None, post: PostRecord) -> bool:
    return _confirmed(viewer) and viewer.id == post.user_id


def visible_contact(post: PostRecord, viewer: AuthUser | None, profile: ProfileRecord | None) -> str | None:
    """Return the contact string to render for ``post``, or ``None`` to hide it."""

    if post.post_type != "donation":
        return None
    if not can_view_contact(viewer, profile):
        return None
    return post.resource_contact


def posting_restriction_message(viewer: AuthUser | None, profile: ProfileRecord | None) -> str:
    if viewer is None:
        return "Sign in to share content"
    if not viewer.email_confirmed:
        return "Verify your email to share content"
    if profile is None:
        return "Profile loading..."
    return "Share your thoughts with the community!"


def claim_denial_reason(viewer: AuthUser | None, profile: ProfileRecord | None) -> str | None:
    """Explain why the viewer may not claim a resource; ``None`` when allowed."""

    if viewer is None:
        return "Please sign in to claim resources"
    if not viewer.email_confirmed:
        return "Please verify your email to claim resources"
    if profile is None or profile.role != ROLE_STUDENT:
        return "Only students can claim resources"
    if profile.verification_status != VERIFICATION_VERIFIED:
        return "You need to be a verified student to claim resources"
    return None


def verification_label(profile: ProfileRecord) -> str:
    if profile.role == ROLE_DONOR:
        return "Verified Donor"
    if profile.verification_status == VERIFICATION_VERIFIED:
        return "Verified Student"
    if profile.verification_status == VERIFICATION_PENDING:
        return "Pending Verification"
    return "Unverified"


__all__ = [
    "is_treated_as_verified",
    "can_post",
    "can_claim_resource",
    "can_view_contact",
    "can_edit_post",
    "visible_contact",
    "posting_restriction_message",
    "claim_denial_reason",
    "verification_label",
]
