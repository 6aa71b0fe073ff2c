"""YouTube URL shape validation.

Accepts the same URL families as the upstream player links:

- ``https://www.youtube.com/watch?v=<id>`` (also ``m.``, ``music.``, ``gaming.``)
- ``https://youtu.be/<id>``
- ``https://www.youtube.com/{embed,v,shorts,live}/<id>``

Only the shape is checked here; whether the video exists is the extractor's job.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit
import re


VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")

QUERY_HOSTS = frozenset(
    {
        "youtube.com",
        "www.youtube.com",
        "m.youtube.com",
        "music.youtube.com",
        "gaming.youtube.com",
    }
)
SHORT_HOSTS = frozenset({"youtu.be"})
PATH_HOSTS = frozenset({"youtube.com", "www.youtube.com"})
PATH_PREFIXES = ("embed", "v", "shorts", "live")


def extract_video_id(url: str | None) -> str | None:
    text = str(url or "").strip()
    if not text:
        return None
    try:
        parts = urlsplit(text)
    except ValueError:
        return None
    if parts.scheme.lower() not in {"http", "https"}:
        return None
    host = (parts.hostname or "").lower()
    segments = [segment for segment in parts.path.split("/") if segment]

    candidate: str | None = None
    if host in SHORT_HOSTS:
        candidate = segments[0] if segments else None
    elif host in PATH_HOSTS and len(segments) >= 2 and segments[0] in PATH_PREFIXES:
        candidate = segments[1]
    elif host in QUERY_HOSTS:
        values = parse_qs(parts.query).get("v") or []
        candidate = values[0] if values else None

    if candidate is None:
        return None
    candidate = candidate.strip()
    if not VIDEO_ID_PATTERN.match(candidate):
        return None
    return candidate


def is_valid_video_url(url: str | None) -> bool:
    return extract_video_id(url) is not None
