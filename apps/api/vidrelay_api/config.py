"""Environment-driven settings for the relay service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import os


logger = logging.getLogger("vidrelay_api.config")

DEFAULT_RATE_LIMIT_MAX_REQUESTS = 5
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 60
DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 25.0
DEFAULT_PORT = 3000


class DeploymentMode(str, Enum):
    # Long-lived process: limiter state survives between requests and is swept.
    PERSISTENT = "persistent"
    # One-shot serverless invocation: no sweeper, state is best effort only.
    PER_INVOCATION = "per_invocation"


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int, *, minimum: int = 1) -> int:
    raw = str(os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[CONFIG] Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default
    if value < minimum:
        logger.warning("[CONFIG] Ignoring %s=%d below minimum %d, using %d", name, value, minimum, default)
        return default
    return value


def _float_env(name: str, default: float) -> float:
    raw = str(os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[CONFIG] Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("[CONFIG] Ignoring non-positive %s=%s, using %s", name, raw, default)
        return default
    return value


def _deployment_mode() -> DeploymentMode:
    raw = str(os.environ.get("VIDRELAY_DEPLOYMENT_MODE") or "").strip().lower()
    if raw:
        try:
            return DeploymentMode(raw)
        except ValueError:
            logger.warning("[CONFIG] Unknown VIDRELAY_DEPLOYMENT_MODE=%r, detecting platform", raw)
    if _truthy_env("VERCEL", False):
        return DeploymentMode.PER_INVOCATION
    return DeploymentMode.PERSISTENT


@dataclass(frozen=True)
class RelaySettings:
    deployment_mode: DeploymentMode = DeploymentMode.PERSISTENT
    rate_limit_max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS
    rate_limit_window_seconds: int = DEFAULT_RATE_LIMIT_WINDOW_SECONDS
    upstream_timeout_seconds: float = DEFAULT_UPSTREAM_TIMEOUT_SECONDS
    cors_origins: tuple[str, ...] = ("*",)
    trust_forwarded_for: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

    @property
    def sweeper_enabled(self) -> bool:
        return self.deployment_mode is DeploymentMode.PERSISTENT

    @property
    def redirect_landing_page(self) -> bool:
        return self.deployment_mode is DeploymentMode.PER_INVOCATION


def load_settings() -> RelaySettings:
    mode = _deployment_mode()
    origins = tuple(
        origin.strip()
        for origin in str(os.environ.get("VIDRELAY_CORS_ORIGINS") or "*").split(",")
        if origin.strip()
    ) or ("*",)
    return RelaySettings(
        deployment_mode=mode,
        rate_limit_max_requests=_int_env(
            "VIDRELAY_RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS
        ),
        rate_limit_window_seconds=_int_env(
            "VIDRELAY_RATE_LIMIT_WINDOW_SECONDS", DEFAULT_RATE_LIMIT_WINDOW_SECONDS
        ),
        upstream_timeout_seconds=_float_env(
            "VIDRELAY_UPSTREAM_TIMEOUT_SECONDS", DEFAULT_UPSTREAM_TIMEOUT_SECONDS
        ),
        cors_origins=origins,
        trust_forwarded_for=_truthy_env(
            "VIDRELAY_TRUST_FORWARDED_FOR",
            default=mode is DeploymentMode.PER_INVOCATION,
        ),
        log_level=str(os.environ.get("VIDRELAY_LOG_LEVEL") or "INFO").strip().upper() or "INFO",
        host=str(os.environ.get("HOST") or "0.0.0.0").strip() or "0.0.0.0",
        port=_int_env("PORT", DEFAULT_PORT),
    )
