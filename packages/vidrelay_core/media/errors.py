"""Relay error taxonomy and upstream failure classification.

Every error raised towards the HTTP layer is a ``RelayError`` carrying the
status code and a user-facing (French) message. Upstream failures arrive as
``UpstreamError`` and are turned into one of the concrete relay errors by
``classify_upstream_error``.
"""

from __future__ import annotations

import re


MESSAGE_MISSING_URL = "URL manquante. Veuillez fournir une URL YouTube valide."
MESSAGE_INVALID_URL = "URL YouTube invalide. Veuillez vérifier l'URL et réessayer."
MESSAGE_RATE_LIMITED = "Trop de requêtes. Veuillez attendre 1 minute avant de réessayer."
MESSAGE_UNAVAILABLE = (
    "Vidéo non disponible. Elle pourrait être privée, supprimée, géo-bloquée "
    "ou temporairement inaccessible."
)
MESSAGE_AGE_RESTRICTED = "Cette vidéo a une restriction d'âge et ne peut pas être téléchargée."
MESSAGE_ACCESS_DENIED = "Accès refusé. La vidéo pourrait avoir des restrictions de téléchargement."
MESSAGE_UPSTREAM_THROTTLED = (
    "Trop de requêtes vers YouTube. Veuillez attendre quelques minutes et réessayer. "
    "YouTube limite le nombre de téléchargements."
)
MESSAGE_DOWNLOAD_FAILED = "Erreur lors du téléchargement. Veuillez réessayer plus tard."

_UNAVAILABLE_MARKERS = (
    "video unavailable",
    "private video",
    "this video has been removed",
    "this video is no longer available",
    "not available in your country",
    "has been terminated",
    "does not exist",
)
_AGE_MARKERS = (
    "age-restricted",
    "age restricted",
    "confirm your age",
    "inappropriate for some users",
)
_THROTTLE_MARKERS = ("too many requests",)
_HTTP_STATUS_IN_TEXT = re.compile(r"HTTP Error (\d{3})")


class RelayError(Exception):
    def __init__(self, message: str, *, status_code: int, error_code: str) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class MissingUrlError(RelayError):
    def __init__(self) -> None:
        super().__init__(MESSAGE_MISSING_URL, status_code=400, error_code="missing_url")


class InvalidUrlError(RelayError):
    def __init__(self) -> None:
        super().__init__(MESSAGE_INVALID_URL, status_code=400, error_code="invalid_url")


class RateLimitExceededError(RelayError):
    def __init__(self, *, retry_after_seconds: int = 0) -> None:
        super().__init__(MESSAGE_RATE_LIMITED, status_code=429, error_code="rate_limited")
        self.retry_after_seconds = max(0, int(retry_after_seconds))


class VideoUnavailableError(RelayError):
    def __init__(self) -> None:
        super().__init__(MESSAGE_UNAVAILABLE, status_code=404, error_code="video_unavailable")


class AgeRestrictedError(RelayError):
    def __init__(self) -> None:
        super().__init__(MESSAGE_AGE_RESTRICTED, status_code=403, error_code="age_restricted")


class AccessDeniedError(RelayError):
    def __init__(self) -> None:
        super().__init__(MESSAGE_ACCESS_DENIED, status_code=403, error_code="access_denied")


class UpstreamThrottledError(RelayError):
    def __init__(self) -> None:
        super().__init__(MESSAGE_UPSTREAM_THROTTLED, status_code=429, error_code="upstream_throttled")


class DownloadFailedError(RelayError):
    def __init__(self) -> None:
        super().__init__(MESSAGE_DOWNLOAD_FAILED, status_code=500, error_code="download_failed")


class NoDownloadableFormatError(RelayError):
    def __init__(self) -> None:
        super().__init__(MESSAGE_DOWNLOAD_FAILED, status_code=500, error_code="no_format")


class UpstreamError(RuntimeError):
    """Failure reported by the extraction library or the media CDN."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def throttled(self) -> bool:
        if self.status_code == 429:
            return True
        text = str(self).lower()
        return any(marker in text for marker in _THROTTLE_MARKERS)


def status_from_text(text: str) -> int | None:
    match = _HTTP_STATUS_IN_TEXT.search(str(text or ""))
    if not match:
        return None
    return int(match.group(1))


def classify_upstream_error(exc: UpstreamError) -> RelayError:
    text = str(exc).lower()
    status = exc.status_code
    if status is None:
        status = status_from_text(str(exc))

    if status in {404, 410} or any(marker in text for marker in _UNAVAILABLE_MARKERS):
        return VideoUnavailableError()
    if any(marker in text for marker in _AGE_MARKERS):
        return AgeRestrictedError()
    if status == 403:
        return AccessDeniedError()
    if status == 429 or exc.throttled:
        return UpstreamThrottledError()
    return DownloadFailedError()
