"""Startup-time helpers for safe config logging."""

import os

from payrelay.common.logging import logger


SECRET_MARKERS = ["KEY", "SECRET", "PASSWORD", "TOKEN"]


def _safe_env(name: str) -> str:
    """Return env value with simple redaction for secret-like variable names."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(secret in name for secret in SECRET_MARKERS):
        return "<redacted>"
    return value


def safe_config(keys: list[str]) -> dict[str, str]:
    """Redacted mapping of the given environment keys."""

    return {key: _safe_env(key) for key in keys}


def log_startup_config(service_name: str, keys: list[str]) -> None:
    """Log selected startup config keys for quick troubleshooting."""

    config = {"service": service_name}
    config.update(safe_config(keys))
    logger.info("startup_config=%s", config)
