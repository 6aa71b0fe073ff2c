"""Upstream media streaming and chunk relay to the client."""

from __future__ import annotations

from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol
import logging

import anyio
import httpx
from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from packages.vidrelay_core.media.errors import UpstreamError
from packages.vidrelay_core.media.formats import MediaFormat


logger = logging.getLogger("vidrelay_api.stream_relay")

CHUNK_SIZE = 256 * 1024
PROGRESS_LOG_STEP_BYTES = 16 * 1024 * 1024
MEDIA_REQUEST_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "identity",
    "Referer": "https://www.youtube.com/",
}

DisconnectProbe = Callable[[], Awaitable[bool]]


class UpstreamStream(Protocol):
    content_length: Optional[int]

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        ...

    async def aclose(self) -> None:
        ...


class StreamOpener(Protocol):
    async def open(self, fmt: MediaFormat) -> UpstreamStream:
        ...


class HttpxUpstreamStream:
    """Open upstream response plus the client that owns its connection."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response, *, chunk_size: int = CHUNK_SIZE) -> None:
        self._client = client
        self._response = response
        self._chunk_size = chunk_size
        self.closed = False
        raw_length = response.headers.get("content-length")
        self.content_length = int(raw_length) if raw_length and raw_length.isdigit() else None

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self._response.aiter_bytes(self._chunk_size):
            yield chunk

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()


class HttpxStreamOpener:
    def __init__(
        self,
        *,
        timeout_seconds: float = 25.0,
        chunk_size: int = CHUNK_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = float(timeout_seconds)
        self.chunk_size = chunk_size
        self._transport = transport

    async def open(self, fmt: MediaFormat) -> HttpxUpstreamStream:
        headers = dict(MEDIA_REQUEST_HEADERS)
        headers.update(fmt.http_headers)
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            follow_redirects=True,
            transport=self._transport,
        )
        try:
            request = client.build_request("GET", fmt.url, headers=headers)
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            raise UpstreamError(f"Media request failed: {exc.__class__.__name__}", status_code=None) from exc

        if response.status_code >= 400:
            status = response.status_code
            await response.aclose()
            await client.aclose()
            raise UpstreamError(f"HTTP Error {status} from media host", status_code=status)

        return HttpxUpstreamStream(client, response, chunk_size=self.chunk_size)


async def _close_upstream(upstream: UpstreamStream) -> None:
    if getattr(upstream, "closed", False):
        return
    # Shielded so a cancelled response task still releases the upstream socket.
    with anyio.CancelScope(shield=True):
        try:
            await upstream.aclose()
        except Exception as exc:
            logger.warning("[STREAM] Failed to close upstream stream: %s", exc)


async def read_first_chunk(upstream: UpstreamStream) -> tuple[bytes, AsyncIterator[bytes]]:
    """Pull the first non-empty chunk before any response header is sent.

    Returns the chunk and the iterator to continue from. A failure at this point
    can still become an HTTP error status, so the upstream is closed and the
    failure re-raised as ``UpstreamError``.
    """
    chunks = upstream.aiter_bytes()
    try:
        async for chunk in chunks:
            if chunk:
                return chunk, chunks
        return b"", chunks
    except Exception as exc:
        await _close_upstream(upstream)
        if isinstance(exc, UpstreamError):
            raise
        raise UpstreamError(
            f"Media stream failed before the first byte: {exc.__class__.__name__}",
            status_code=None,
        ) from exc
    except BaseException:
        await _close_upstream(upstream)
        raise


async def relay_upstream(
    upstream: UpstreamStream,
    *,
    first_chunk: bytes = b"",
    chunks: Optional[AsyncIterator[bytes]] = None,
    is_disconnected: Optional[DisconnectProbe] = None,
    label: str = "",
) -> AsyncIterator[bytes]:
    """Yield upstream chunks as they arrive and always close the upstream.

    ``first_chunk`` and ``chunks`` come from ``read_first_chunk`` when the caller
    already pulled the head of the stream. Headers are on the wire once this
    generator runs, so failures here can only be logged; the transfer ends.
    """
    sent = 0
    next_progress = PROGRESS_LOG_STEP_BYTES
    total = upstream.content_length
    source = chunks if chunks is not None else upstream.aiter_bytes()
    logger.info("[STREAM] Stream started for %s, size=%s", label, total if total is not None else "unknown")
    try:
        if first_chunk:
            sent += len(first_chunk)
            yield first_chunk
        async for chunk in source:
            if is_disconnected is not None and await is_disconnected():
                logger.info("[STREAM] Client closed connection for %s after %d bytes", label, sent)
                return
            sent += len(chunk)
            yield chunk
            if sent >= next_progress:
                next_progress += PROGRESS_LOG_STEP_BYTES
                if total:
                    logger.debug("[STREAM] Progress for %s: %.2f%%", label, sent / total * 100)
                else:
                    logger.debug("[STREAM] Progress for %s: %d bytes", label, sent)
        logger.info("[STREAM] Download finished for %s (%d bytes)", label, sent)
    except anyio.get_cancelled_exc_class():
        logger.info("[STREAM] Client closed connection for %s after %d bytes", label, sent)
        raise
    except GeneratorExit:
        logger.info("[STREAM] Client closed connection for %s after %d bytes", label, sent)
        raise
    except Exception as exc:
        logger.error("[STREAM] Stream error for %s after %d bytes: %s", label, sent, exc)
    finally:
        await _close_upstream(upstream)


class RelayStreamingResponse(StreamingResponse):
    """Streaming response that owns its upstream.

    The body generator's ``finally`` never runs if sending the response start
    fails, so the upstream is also closed once the response itself finishes.
    """

    def __init__(self, content: AsyncIterator[bytes], *, upstream: UpstreamStream, **kwargs) -> None:
        super().__init__(content, **kwargs)
        self.upstream = upstream

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await _close_upstream(self.upstream)
