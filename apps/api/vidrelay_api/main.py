"""FastAPI entrypoint for the vidrelay download relay."""

from __future__ import annotations

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from packages.vidrelay_core.media.errors import RateLimitExceededError, RelayError
from packages.vidrelay_core.media.extractor import MediaExtractor, YtDlpExtractor
from packages.vidrelay_core.media.resolver import MediaResolver

from .config import DeploymentMode, RelaySettings, load_settings
from .middleware.preflight import OptionsShortCircuitMiddleware
from .middleware.rate_limit import InMemoryRateLimiter
from .routers.download import router as download_router
from .routers.health import router as health_router
from .routers.pages import router as pages_router
from .services.rate_limit_sweeper import RateLimitSweeper
from .services.stream_relay import HttpxStreamOpener, StreamOpener

_startup_settings = load_settings()
_log_level = getattr(logging, _startup_settings.log_level, logging.INFO)

logging.basicConfig(
    level=_log_level if isinstance(_log_level, int) else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("vidrelay_api")

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"]

MESSAGE_NOT_FOUND = "Page non trouvée"
MESSAGE_METHOD_NOT_ALLOWED = "Méthode non autorisée"
MESSAGE_INTERNAL_ERROR = "Erreur interne du serveur"


def _error_response(status_code: int, message: str, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def create_app(
    settings: Optional[RelaySettings] = None,
    *,
    extractor: Optional[MediaExtractor] = None,
    stream_opener: Optional[StreamOpener] = None,
    resolver: Optional[MediaResolver] = None,
    clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    settings = settings or load_settings()
    limiter_kwargs = {"clock": clock} if clock is not None else {}
    limiter = InMemoryRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        **limiter_kwargs,
    )
    sweeper = RateLimitSweeper(limiter)
    if resolver is None:
        resolver = MediaResolver(
            extractor or YtDlpExtractor(socket_timeout_seconds=settings.upstream_timeout_seconds)
        )
    if stream_opener is None:
        stream_opener = HttpxStreamOpener(timeout_seconds=settings.upstream_timeout_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "[STARTUP] vidrelay starting (mode=%s, limit=%d requests/%ds)",
            settings.deployment_mode.value,
            settings.rate_limit_max_requests,
            settings.rate_limit_window_seconds,
        )
        if settings.sweeper_enabled:
            sweeper.start()
        elif settings.deployment_mode is DeploymentMode.PER_INVOCATION:
            logger.warning(
                "[STARTUP] Per-invocation mode: rate limits only hold while this instance stays warm"
            )
        yield
        sweeper.stop()
        logger.info("[SHUTDOWN] vidrelay stopped")

    app = FastAPI(title="vidrelay", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.rate_limiter = limiter
    app.state.rate_limit_sweeper = sweeper
    app.state.resolver = resolver
    app.state.stream_opener = stream_opener
    app.state.started_monotonic = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )
    # Added last so it wraps CORS: preflights are never rejected with 400.
    app.add_middleware(
        OptionsShortCircuitMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

    app.include_router(pages_router)
    app.include_router(download_router)
    app.include_router(health_router)

    @app.exception_handler(RelayError)
    async def _relay_error_handler(request: Request, exc: RelayError):
        headers = None
        if isinstance(exc, RateLimitExceededError):
            headers = {"Retry-After": str(max(1, exc.retry_after_seconds))}
        return _error_response(exc.status_code, exc.message, headers)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error_response(404, MESSAGE_NOT_FOUND)
        if exc.status_code == 405:
            return _error_response(405, MESSAGE_METHOD_NOT_ALLOWED, getattr(exc, "headers", None))
        return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("[ERROR] Unhandled error on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(500, MESSAGE_INTERNAL_ERROR)

    return app


app = create_app(_startup_settings)
