"""Shared URL utilities: validate target URLs and derive stable directory slugs."""

from __future__ import annotations

import re
from urllib.parse import urlparse

from visual_qa.errors import InvalidURLError

_ALLOWED_SCHEMES = ("http", "https")


def validate_url(url: str) -> str:
    """Return the URL unchanged, or raise InvalidURLError for non-http(s) input."""
    if not url or not isinstance(url, str):
        raise InvalidURLError("URL must not be empty")
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise InvalidURLError(
            f"Unsupported URL scheme '{parsed.scheme}' in {url!r}; only http and https are allowed"
        )
    if not parsed.netloc:
        raise InvalidURLError(f"Invalid URL: {url!r}")
    return url


def url_to_slug(url: str, max_length: int = 100) -> str:
    """Turn a URL into a filesystem-safe directory name."""
    stripped = re.sub(r"^https?://", "", url)
    return re.sub(r"[^a-zA-Z0-9]", "_", stripped)[:max_length]
