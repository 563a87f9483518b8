from __future__ import annotations

import hashlib
import re
from urllib.parse import urlsplit

from truthlenz.models.types import MEDIA_KINDS, VerificationRequest

_WHITESPACE = re.compile(r"\s+")
_DATA_URL = re.compile(r"^data:([^;,]+);base64,", re.IGNORECASE)

DEFAULT_MIME_TYPES = {"image": "image/jpeg", "video": "video/mp4"}


def canonicalize(content: str, kind: str) -> str:
    """Return the stable form of *content* used for hashing.

    Media payloads are returned untouched; text is lower-cased with
    whitespace collapsed, and URLs are reduced to ``scheme://host/path``.
    """
    if kind in MEDIA_KINDS:
        return content

    normalized = _WHITESPACE.sub(" ", content.strip())

    if kind == "url":
        lowered = normalized.lower()
        try:
            parts = urlsplit(lowered)
        except ValueError:
            return lowered.rstrip("/")
        if not parts.scheme or not parts.netloc:
            return lowered.rstrip("/")
        return f"{parts.scheme}://{parts.netloc}{parts.path}".rstrip("/")

    return normalized.lower()


def fingerprint(canonical: str | bytes) -> str:
    data = canonical if isinstance(canonical, bytes) else canonical.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def canonical_input(request: VerificationRequest) -> str:
    if request.is_media:
        return request.media_payload or ""
    return canonicalize(request.content or "", request.kind)


def fingerprint_request(request: VerificationRequest) -> str:
    return fingerprint(canonical_input(request))


def split_data_url(payload: str, kind: str = "image") -> tuple[str, str]:
    """Split a ``data:<mime>;base64,<data>`` URL into ``(mime, data)``.

    Bare base64 gets the default mime type for *kind*.
    """
    match = _DATA_URL.match(payload)
    if match:
        return match.group(1).lower(), payload[match.end():]
    return DEFAULT_MIME_TYPES.get(kind, "image/jpeg"), payload
