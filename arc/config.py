"""
A.R.C. Portal configuration.

Environment is loaded once at import time: `.env.local` when it exists
(local development), otherwise `.env`. Values are then read into a frozen
Settings object by load_settings(). Nothing else in the package reads
os.environ directly.

Public API:
  load_settings(environ=None) -> Settings
  configure_logging(level) -> None
"""

from __future__ import annotations

import logging
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

_env_local = Path(".env.local")
if _env_local.exists():
    load_dotenv(_env_local)
else:
    load_dotenv()

DEFAULT_REQUEST_TIMEOUT: float = 15.0
DEFAULT_GEMINI_MODEL: str = "gemini-2.0-flash"
DEFAULT_LOG_LEVEL: str = "INFO"


class ConfigError(Exception):
    """Missing or invalid configuration detected at startup."""


@dataclass(frozen=True)
class Settings:
    backend_url: str
    backend_anon_key: str
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    notifications_table: Optional[str] = None
    column_aliases_file: Optional[str] = None
    session_file: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    log_level: str = DEFAULT_LOG_LEVEL


def _first(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Raises ConfigError naming the variable when a required value is missing
    or a numeric value cannot be parsed.
    """
    env = os.environ if environ is None else environ

    backend_url = _first(env, "ARC_BACKEND_URL", "SUPABASE_URL")
    if not backend_url:
        raise ConfigError("ARC_BACKEND_URL is not set (backend project URL).")
    anon_key = _first(env, "ARC_BACKEND_ANON_KEY", "SUPABASE_ANON_KEY")
    if not anon_key:
        raise ConfigError("ARC_BACKEND_ANON_KEY is not set (backend public API key).")

    raw_timeout = _first(env, "ARC_REQUEST_TIMEOUT")
    timeout = DEFAULT_REQUEST_TIMEOUT
    if raw_timeout is not None:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigError(f"ARC_REQUEST_TIMEOUT must be a number of seconds, got '{raw_timeout}'.")
        if timeout <= 0:
            raise ConfigError("ARC_REQUEST_TIMEOUT must be greater than zero.")

    log_level = (_first(env, "ARC_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    if log_level not in logging.getLevelNamesMapping():
        raise ConfigError(f"ARC_LOG_LEVEL '{log_level}' is not a logging level.")

    return Settings(
        backend_url=backend_url.rstrip("/"),
        backend_anon_key=anon_key,
        request_timeout=timeout,
        notifications_table=_first(env, "ARC_NOTIFICATIONS_TABLE"),
        column_aliases_file=_first(env, "ARC_COLUMN_ALIASES_FILE"),
        session_file=_first(env, "ARC_SESSION_FILE"),
        gemini_api_key=_first(env, "GEMINI_API_KEY", "API_KEY"),
        gemini_model=_first(env, "ARC_GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

_SECRET_PATTERNS = [
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-_.]+", re.IGNORECASE),
    re.compile(r"((?:api_?key|apikey|password|access_token|refresh_token)['\"]?\s*[=:]\s*['\"]?)[^'\",\s}&]+", re.IGNORECASE),
]


class SecretMaskingFilter(logging.Filter):
    """Masks bearer tokens, API keys and passwords in formatted messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = message
        for pattern in _SECRET_PATTERNS:
            masked = pattern.sub(r"\1***", masked)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Install a single masked stream handler on the root logger."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_arc_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    handler.addFilter(SecretMaskingFilter())
    handler._arc_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
