"""Download relay endpoint."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from packages.vidrelay_core.media.errors import (
    InvalidUrlError,
    MissingUrlError,
    RateLimitExceededError,
    UpstreamError,
    classify_upstream_error,
)
from packages.vidrelay_core.media.filenames import attachment_filename
from packages.vidrelay_core.media.formats import select_format
from packages.vidrelay_core.media.urls import is_valid_video_url

from ..services.stream_relay import RelayStreamingResponse, read_first_chunk, relay_upstream

logger = logging.getLogger("vidrelay_api.download")


router = APIRouter(tags=["download"])


def client_identifier(request: Request) -> str:
    settings = request.app.state.settings
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for") or ""
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


@router.get("/download")
async def download(request: Request, url: Optional[str] = Query(default=None)) -> RelayStreamingResponse:
    state = request.app.state
    url = (url or "").strip()
    if not url:
        logger.info("[DOWNLOAD] Rejected request without url")
        raise MissingUrlError()
    if not is_valid_video_url(url):
        logger.info("[DOWNLOAD] Rejected invalid url: %s", url)
        raise InvalidUrlError()

    client_id = client_identifier(request)
    limiter = state.rate_limiter
    allowed, retry_after = limiter.acquire(client_id)
    if not allowed:
        logger.warning("[RATE_LIMIT] Client %s exceeded %d requests/%ds", client_id, limiter.max_requests, limiter.window_seconds)
        raise RateLimitExceededError(retry_after_seconds=retry_after)

    logger.info("[DOWNLOAD] Starting download for %s (client=%s)", url, client_id)
    try:
        info = await state.resolver.resolve(url)
        fmt = select_format(info.formats)
        logger.info(
            "[DOWNLOAD] Selected format %s (%s, %sp, audio=%s, video=%s) for '%s'",
            fmt.format_id,
            fmt.ext,
            fmt.height,
            fmt.has_audio,
            fmt.has_video,
            info.title,
        )
        upstream = await state.stream_opener.open(fmt)
        first_chunk, chunks = await read_first_chunk(upstream)
    except UpstreamError as exc:
        mapped = classify_upstream_error(exc)
        logger.error(
            "[DOWNLOAD] Download failed for %s: %s -> %d %s",
            url,
            exc,
            mapped.status_code,
            mapped.error_code,
        )
        raise mapped from exc

    headers = {
        "Content-Disposition": f'attachment; filename="{attachment_filename(info.title, fmt.ext)}"',
        "Cache-Control": "no-cache",
    }
    if upstream.content_length is not None:
        headers["Content-Length"] = str(upstream.content_length)

    return RelayStreamingResponse(
        relay_upstream(
            upstream,
            first_chunk=first_chunk,
            chunks=chunks,
            is_disconnected=request.is_disconnected,
            label=info.video_id or url,
        ),
        upstream=upstream,
        media_type=fmt.content_type,
        headers=headers,
    )
