"""Run the relay with uvicorn: ``python -m apps.api.vidrelay_api``."""

from __future__ import annotations

import logging

import uvicorn

from .config import load_settings
from .main import app

logger = logging.getLogger("vidrelay_api")


def main() -> None:
    settings = load_settings()
    logger.info("[STARTUP] Serving on http://%s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
