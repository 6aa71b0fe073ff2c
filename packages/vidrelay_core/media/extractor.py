"""yt-dlp backed metadata extraction.

The extractor is the only place that talks to yt-dlp. Failures are converted to
``UpstreamError`` with the HTTP status recovered from the yt-dlp error chain so
the retry loop and the error classification never see library types.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Protocol

import yt_dlp
from yt_dlp.utils import DownloadError

from .errors import UpstreamError, status_from_text
from .formats import VideoInfo


logger = getLogger("vidrelay_core.media.extractor")

DEFAULT_SOCKET_TIMEOUT_SECONDS = 25.0
DEFAULT_HTTP_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class MediaExtractor(Protocol):
    def get_info(self, url: str) -> VideoInfo:
        ...


def _status_attr(exc: BaseException) -> int | None:
    for attr in ("status", "code", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and 400 <= value <= 599:
            return value
    return None


def status_from_exception(exc: BaseException) -> int | None:
    """Walk the wrapped-exception chain yt-dlp builds and return an HTTP status."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        status = _status_attr(current)
        if status is not None:
            return status
        exc_info = getattr(current, "exc_info", None)
        nested: Any = None
        if isinstance(exc_info, tuple) and len(exc_info) >= 2:
            nested = exc_info[1]
        if not isinstance(nested, BaseException):
            nested = getattr(current, "cause", None)
        if not isinstance(nested, BaseException):
            nested = current.__cause__ or current.__context__
        current = nested if isinstance(nested, BaseException) else None
    return status_from_text(str(exc))


def _clean_message(exc: BaseException) -> str:
    text = str(getattr(exc, "msg", None) or exc).strip()
    if text.startswith("ERROR: "):
        text = text[len("ERROR: "):]
    return text or exc.__class__.__name__


class YtDlpExtractor:
    def __init__(
        self,
        *,
        socket_timeout_seconds: float = DEFAULT_SOCKET_TIMEOUT_SECONDS,
        http_headers: dict[str, str] | None = None,
    ) -> None:
        self.socket_timeout_seconds = float(socket_timeout_seconds)
        self.http_headers = dict(http_headers or DEFAULT_HTTP_HEADERS)

    def _options(self) -> dict[str, Any]:
        return {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "noplaylist": True,
            "socket_timeout": self.socket_timeout_seconds,
            "http_headers": self.http_headers,
        }

    def get_info(self, url: str) -> VideoInfo:
        try:
            with yt_dlp.YoutubeDL(self._options()) as ydl:
                raw = ydl.extract_info(url, download=False)
        except DownloadError as exc:
            status = status_from_exception(exc)
            message = _clean_message(exc)
            logger.debug("[EXTRACT] yt-dlp failed for %s: status=%s message=%s", url, status, message)
            raise UpstreamError(message, status_code=status) from exc
        if not raw:
            raise UpstreamError("Video unavailable: empty extraction result", status_code=None)
        return VideoInfo.from_ytdlp(raw)
