from __future__ import annotations

import re

_URL_PATTERN = re.compile(r"https?://[^\s<>\"']+")
_TRAILING_PUNCTUATION = ".,;:!?)]}"


def extract_first_url(text: str | None) -> str | None:
    """Return the first http(s) URL in ``text`` without trailing punctuation."""

    if not text:
        return None
    match = _URL_PATTERN.search(text)
    if match is None:
        return None
    url = match.group(0).rstrip(_TRAILING_PUNCTUATION)
    return url if "://" in url and url.split("://", 1)[1] else None


__all__ = ["extract_first_url"]
