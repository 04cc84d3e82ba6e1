"""Convenience exports for service layer."""
from .auth_service import (
    confirm_email,
    create_access_token,
    decode_access_token,
    get_current_user,
    get_optional_user,
    require_admin_token,
    require_confirmed_user,
    resend_confirmation,
    sign_in,
    sign_up,
)
from .email_service import EmailDeliveryError, send_confirmation_email, send_email
from .link_preview_service import LinkPreview, fetch_link_preview, parse_link_preview
from .post_service import (
    add_like,
    create_comment,
    create_post_record,
    delete_post_record,
    get_post_record,
    list_feed_records,
    remove_like,
    serialize_post,
    update_post_record,
)
from .profile_service import get_profile, request_verification, set_verification_status, update_profile
from .realtime import ChangeFeedManager, change_feed, publish_change
from .storage_service import (
    StorageConfigurationError,
    StorageUploadError,
    get_storage_backend,
    upload_object,
)

__all__ = [
    "confirm_email",
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "get_optional_user",
    "require_admin_token",
    "require_confirmed_user",
    "resend_confirmation",
    "sign_in",
    "sign_up",
    "EmailDeliveryError",
    "send_confirmation_email",
    "send_email",
    "LinkPreview",
    "fetch_link_preview",
    "parse_link_preview",
    "add_like",
    "create_comment",
    "create_post_record",
    "delete_post_record",
    "get_post_record",
    "list_feed_records",
    "remove_like",
    "serialize_post",
    "update_post_record",
    "get_profile",
    "request_verification",
    "set_verification_status",
    "update_profile",
    "ChangeFeedManager",
    "change_feed",
    "publish_change",
    "StorageConfigurationError",
    "StorageUploadError",
    "get_storage_backend",
    "upload_object",
]
