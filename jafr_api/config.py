from __future__ import annotations

import os
from typing import Any

_TRUTHY = {"1", "true", "yes", "y", "on"}


def as_flag(value: Any) -> bool:
    """Booleans pass through; strings are read like the env flags ("false" is False)."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _env_flag(name: str, default: str) -> bool:
    return as_flag(os.getenv(name, default))


def _normalize_base_url(url: str | None) -> str:
    """
    Trailing slashes break httpx's base_url joining ("/v1/" + "/chat/...").
    """
    if not url:
        return "https://openrouter.ai/api/v1"
    return url.rstrip("/")


class Config:
    API_TITLE = "Jafr Analysis API"
    API_VERSION = "v1"
    OPENAPI_VERSION = "3.0.3"
    OPENAPI_URL_PREFIX = "/"
    OPENAPI_SWAGGER_UI_PATH = "/swagger-ui"
    OPENAPI_SWAGGER_UI_URL = "https://cdn.jsdelivr.net/npm/swagger-ui-dist/"

    # Dev server only; the Werkzeug debugger stays off unless asked for.
    DEBUG = _env_flag("FLASK_DEBUG", "false")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Remote completion provider (OpenAI-compatible chat API).
    OPENROUTER_BASE_URL = _normalize_base_url(os.getenv("OPENROUTER_BASE_URL"))
    ORACLE_MODEL = os.getenv("ORACLE_MODEL", "deepseek/deepseek-chat")
    ORACLE_TIMEOUT_SECONDS = float(os.getenv("ORACLE_TIMEOUT_SECONDS", "60"))
    ORACLE_CONNECT_TIMEOUT_SECONDS = float(os.getenv("ORACLE_CONNECT_TIMEOUT_SECONDS", "15"))
    # Wall-clock cap on a whole completion call, body included.
    ORACLE_TOTAL_TIMEOUT_SECONDS = float(
        os.getenv("ORACLE_TOTAL_TIMEOUT_SECONDS", str(ORACLE_TIMEOUT_SECONDS))
    )
    ORACLE_KEY_CHECK_TIMEOUT_SECONDS = float(os.getenv("ORACLE_KEY_CHECK_TIMEOUT_SECONDS", "15"))
    ORACLE_TEMPERATURE = float(os.getenv("ORACLE_TEMPERATURE", "0.7"))
    ORACLE_MAX_TOKENS = int(os.getenv("ORACLE_MAX_TOKENS", "2000"))

    # Set ORACLE_ENABLED=false to serve traditional results only.
    ORACLE_ENABLED = _env_flag("ORACLE_ENABLED", "true")

    # Surface check only; liveness is asked of the provider.
    API_KEY_PREFIX = os.getenv("API_KEY_PREFIX", "sk-")
    API_KEY_MIN_LENGTH = int(os.getenv("API_KEY_MIN_LENGTH", "30"))

    # Sent as HTTP-Referer / X-Title for OpenRouter's app attribution.
    APP_REFERER = os.getenv("APP_REFERER", "https://jafr-analysis.netlify.app")
    APP_TITLE = os.getenv("APP_TITLE", "Jafr Analysis System")
