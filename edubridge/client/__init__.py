"""Client core: session, feed state and composer over a ``BackendClient``."""
from .backend import BackendClient, Subscription, UnconfiguredBackend, create_backend
from .composer import Composer, ImageUpload, build_storage_path
from .config import ClientSettings, get_client_settings
from .errors import BackendError, BackendNotConfiguredError, EdubridgeClientError, MalformedRecordError
from .feed import FeedReconciler
from .links import extract_first_url
from .notifier import LoggingNotifier, Notifier
from .session import ViewerSession

__all__ = [
    "BackendClient",
    "Subscription",
    "UnconfiguredBackend",
    "create_backend",
    "Composer",
    "ImageUpload",
    "build_storage_path",
    "ClientSettings",
    "get_client_settings",
    "BackendError",
    "BackendNotConfiguredError",
    "EdubridgeClientError",
    "MalformedRecordError",
    "FeedReconciler",
    "extract_first_url",
    "LoggingNotifier",
    "Notifier",
    "ViewerSession",
]
