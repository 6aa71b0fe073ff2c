"""Media format model and best-format selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit

from .errors import NoDownloadableFormatError


PREFERRED_CONTAINER = "mp4"
DIRECT_PROTOCOLS = frozenset({"http", "https"})

CONTENT_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "3gp": "video/3gpp",
    "flv": "video/x-flv",
    "m4a": "audio/mp4",
    "mp3": "audio/mpeg",
    "opus": "audio/ogg",
    "ogg": "audio/ogg",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0


def _has_codec(value: Any) -> bool:
    return value is not None and str(value).strip().lower() not in {"", "none"}


@dataclass(frozen=True)
class MediaFormat:
    format_id: str
    url: str
    ext: str
    has_video: bool
    has_audio: bool
    height: int = 0
    fps: float = 0.0
    bitrate: float = 0.0
    filesize: int | None = None
    protocol: str = "https"
    http_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_ytdlp(cls, raw: Mapping[str, Any]) -> "MediaFormat":
        url = str(raw.get("url") or "")
        protocol = str(raw.get("protocol") or urlsplit(url).scheme or "").lower()
        vcodec = raw.get("vcodec")
        acodec = raw.get("acodec")
        height = _as_int(raw.get("height"))
        filesize = raw.get("filesize") or raw.get("filesize_approx")
        return cls(
            format_id=str(raw.get("format_id") or ""),
            url=url,
            ext=str(raw.get("ext") or "").lower(),
            has_video=_has_codec(vcodec) or (vcodec is None and height > 0),
            has_audio=_has_codec(acodec),
            height=height,
            fps=_as_float(raw.get("fps")),
            bitrate=_as_float(raw.get("tbr") or raw.get("vbr") or raw.get("abr")),
            filesize=_as_int(filesize) or None,
            protocol=protocol,
            http_headers={str(k): str(v) for k, v in dict(raw.get("http_headers") or {}).items()},
        )

    @property
    def is_direct(self) -> bool:
        return bool(self.url) and self.protocol in DIRECT_PROTOCOLS

    @property
    def is_combined(self) -> bool:
        return self.has_video and self.has_audio

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES.get(self.ext, DEFAULT_CONTENT_TYPE)


@dataclass(frozen=True)
class VideoInfo:
    video_id: str
    title: str
    formats: tuple[MediaFormat, ...]

    @classmethod
    def from_ytdlp(cls, raw: Mapping[str, Any]) -> "VideoInfo":
        formats = tuple(MediaFormat.from_ytdlp(item) for item in raw.get("formats") or [])
        if not formats and raw.get("url"):
            # Single-format extractions put the stream fields on the top level.
            formats = (MediaFormat.from_ytdlp(raw),)
        return cls(
            video_id=str(raw.get("id") or ""),
            title=str(raw.get("title") or ""),
            formats=formats,
        )


def _video_quality(fmt: MediaFormat) -> tuple[int, float, float]:
    return (fmt.height, fmt.fps, fmt.bitrate)


def _audio_quality(fmt: MediaFormat) -> tuple[float, int]:
    return (fmt.bitrate, fmt.filesize or 0)


def select_format(
    formats: Iterable[MediaFormat],
    *,
    preferred_container: str = PREFERRED_CONTAINER,
) -> MediaFormat:
    """Pick the format to relay.

    Preference: combined audio+video in ``preferred_container``, then combined
    in any container, then the best video-bearing format, then audio only.
    Manifest-based formats (HLS, DASH) are never picked.
    """
    streamable = [fmt for fmt in formats if fmt.is_direct]
    combined = [fmt for fmt in streamable if fmt.is_combined]
    preferred = [fmt for fmt in combined if fmt.ext == preferred_container]

    for pool in (preferred, combined):
        if pool:
            return max(pool, key=_video_quality)

    with_video = [fmt for fmt in streamable if fmt.has_video]
    if with_video:
        return max(with_video, key=_video_quality)

    audio_only = [fmt for fmt in streamable if fmt.has_audio]
    if audio_only:
        return max(audio_only, key=_audio_quality)

    raise NoDownloadableFormatError()
