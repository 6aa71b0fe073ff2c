"""Static landing page."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, RedirectResponse, Response

logger = logging.getLogger("vidrelay_api.pages")

STATIC_DIR = Path(__file__).resolve().parents[1] / "static"
INDEX_FILE = STATIC_DIR / "index.html"

router = APIRouter(tags=["pages"])


@router.get("/", include_in_schema=False)
def landing(request: Request) -> Response:
    if request.app.state.settings.redirect_landing_page:
        return RedirectResponse(url="/index.html", status_code=302)
    return FileResponse(INDEX_FILE, media_type="text/html")


@router.get("/index.html", include_in_schema=False)
def index_file() -> FileResponse:
    return FileResponse(INDEX_FILE, media_type="text/html")
