"""Answer every OPTIONS request with 200 before routing."""

from __future__ import annotations

from typing import Sequence

from starlette.datastructures import Headers
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send


class OptionsShortCircuitMiddleware:
    """Outermost middleware: OPTIONS never reaches CORS validation or routing.

    The reply carries the configured CORS headers itself, whatever method or
    headers the preflight asks for.
    """

    # Plain ASGI instead of BaseHTTPMiddleware so streamed bodies pass through untouched.

    def __init__(
        self,
        app: ASGIApp,
        *,
        allow_origins: Sequence[str] = ("*",),
        allow_methods: Sequence[str] = (),
        allow_headers: Sequence[str] = (),
    ) -> None:
        self.app = app
        self.allow_origins = tuple(allow_origins)
        self.allow_methods = ", ".join(allow_methods)
        self.allow_headers = ", ".join(allow_headers)

    def _cors_headers(self, origin: str | None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.allow_methods:
            headers["Access-Control-Allow-Methods"] = self.allow_methods
        if self.allow_headers:
            headers["Access-Control-Allow-Headers"] = self.allow_headers
        if "*" in self.allow_origins:
            headers["Access-Control-Allow-Origin"] = "*"
        elif origin and origin in self.allow_origins:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Access-Control-Allow-Credentials"] = "true"
            headers["Vary"] = "Origin"
        return headers

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope.get("method") == "OPTIONS":
            origin = Headers(scope=scope).get("origin")
            response = PlainTextResponse("OK", status_code=200, headers=self._cors_headers(origin))
            await response(scope, receive, send)
            return
        await self.app(scope, receive, send)
