"""Media resolution helpers for the vidrelay download relay."""

from .errors import RelayError, UpstreamError, classify_upstream_error
from .extractor import MediaExtractor, YtDlpExtractor
from .filenames import attachment_filename, derive_filename
from .formats import MediaFormat, VideoInfo, select_format
from .resolver import MAX_RESOLVE_ATTEMPTS, MediaResolver, retry_delay_seconds
from .urls import extract_video_id, is_valid_video_url

__all__ = [
    "RelayError",
    "UpstreamError",
    "classify_upstream_error",
    "MediaExtractor",
    "YtDlpExtractor",
    "attachment_filename",
    "derive_filename",
    "MediaFormat",
    "VideoInfo",
    "select_format",
    "MAX_RESOLVE_ATTEMPTS",
    "MediaResolver",
    "retry_delay_seconds",
    "extract_video_id",
    "is_valid_video_url",
]
