"""Conversions between tracked URLs and their document identifiers."""
from __future__ import annotations

from urllib.parse import urlparse

_SEPARATOR = "/"
_SLUG_SEPARATOR = "__"


def slugify(url: str) -> str:
    """Return the document id used for ``url`` (``/`` becomes ``__``)."""
    return url.replace(_SEPARATOR, _SLUG_SEPARATOR)


def deslugify(slug: str) -> str:
    """Recover the URL from a document id produced by :func:`slugify`."""
    return slug.replace(_SLUG_SEPARATOR, _SEPARATOR)


def is_tracked_id(doc_id: str) -> bool:
    """Return True when a document id belongs to a tracked URL."""
    return doc_id.startswith("http")


def looks_like_url(value: str) -> bool:
    """Return True for absolute http(s) URLs with a host."""
    parsed = urlparse(value.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
