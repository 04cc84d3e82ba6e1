"""Secret handling helpers."""
from .secrets import MissingSecretError, is_placeholder, require_secret, secret_matches

__all__ = ["MissingSecretError", "is_placeholder", "require_secret", "secret_matches"]
