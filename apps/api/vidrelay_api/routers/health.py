"""Liveness endpoint."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

logger = logging.getLogger("vidrelay_api.health")


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str = Field(default="OK")
    timestamp: str
    uptime: float = Field(ge=0.0, description="Seconds since the application started")
    mode: str


@router.get("/health", response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    logger.debug("[HEALTH] Health check requested")
    state = request.app.state
    return HealthResponse(
        status="OK",
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        uptime=round(max(0.0, time.monotonic() - state.started_monotonic), 3),
        mode=state.settings.deployment_mode.value,
    )
