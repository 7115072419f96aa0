"""Runtime settings for the automator service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_DATABASE_URL = "sqlite:///clients.db"
DEFAULT_GEMINI_MODEL = "gemini-3.1-pro-preview"


def _strip_or_none(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _env_float(name: str, default: float) -> float:
    raw = _strip_or_none(os.environ.get(name))
    if raw is None:
        return float(default)
    try:
        return float(raw)
    except ValueError:
        return float(default)


def _env_int(name: str, default: int) -> int:
    raw = _strip_or_none(os.environ.get(name))
    if raw is None:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _env_bool(name: str, default: bool) -> bool:
    raw = (_strip_or_none(os.environ.get(name)) or "").lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def maybe_load_dotenv() -> None:
    if _env_bool("DISABLE_DOTENV", False):
        return

    from dotenv import load_dotenv

    load_dotenv(override=False)


@dataclass(frozen=True)
class Settings:
    """Service configuration.

    Notes
    -----
    * Controller credentials are *not* settings: they travel with each client
      profile and are sent per request.
    * ``gemini_api_key`` is optional at startup. Only report generation needs it,
      and it fails with a configuration error when it is missing.
    """

    database_url: str = DEFAULT_DATABASE_URL
    http_timeout_seconds: float = 30.0
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    host: str = "0.0.0.0"
    port: int = 3000

    @staticmethod
    def from_env() -> "Settings":
        timeout = _env_float("APPD_HTTP_TIMEOUT_SECONDS", 30.0)
        if timeout <= 0:
            raise ValueError("APPD_HTTP_TIMEOUT_SECONDS must be > 0.")

        return Settings(
            database_url=_strip_or_none(os.environ.get("APPD_DATABASE_URL")) or DEFAULT_DATABASE_URL,
            http_timeout_seconds=timeout,
            gemini_api_key=_strip_or_none(os.environ.get("GEMINI_API_KEY")),
            gemini_model=_strip_or_none(os.environ.get("GEMINI_MODEL")) or DEFAULT_GEMINI_MODEL,
            host=_strip_or_none(os.environ.get("APPD_HOST")) or "0.0.0.0",
            port=_env_int("APPD_PORT", 3000),
        )
