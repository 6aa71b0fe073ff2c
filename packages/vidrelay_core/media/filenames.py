"""Attachment filename derivation for relayed downloads."""

from __future__ import annotations

import re


MAX_FILENAME_LENGTH = 50
FALLBACK_FILENAME = "video"

_DISALLOWED = re.compile(r"[^A-Za-z0-9_\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s", re.ASCII)


def derive_filename(title: str | None) -> str:
    """Return a header-safe base name for ``title`` (no extension).

    The result only holds ASCII letters, digits, ``_``, ``-`` and spaces, is at
    most ``MAX_FILENAME_LENGTH`` characters long and is never empty.
    Applying it to its own output returns the same value.
    """
    cleaned = _DISALLOWED.sub("", str(title or ""))
    # Tabs and newlines are allowed by the filter but not inside a header value.
    cleaned = _WHITESPACE.sub(" ", cleaned)
    cleaned = cleaned[:MAX_FILENAME_LENGTH].strip()
    return cleaned or FALLBACK_FILENAME


def attachment_filename(title: str | None, extension: str) -> str:
    ext = re.sub(r"[^A-Za-z0-9]", "", str(extension or "")).lower() or "mp4"
    return f"{derive_filename(title)}.{ext}"
