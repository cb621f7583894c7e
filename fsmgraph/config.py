"""
Runtime settings.

Values come from the process environment; a `.env` file in the working
directory (or the path in FSMGRAPH_ENV_FILE) is loaded first so local
overrides work without a manual `export`.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

DEFAULT_APP_NAME = "0xFSM"
DEFAULT_APP_VERSION = "1.0.0"


@dataclass(frozen=True)
class Settings:
    app_name: str = DEFAULT_APP_NAME
    app_version: str = DEFAULT_APP_VERSION
    log_level: str = "INFO"
    max_call_depth: int = 32
    notice_history: int = 200
    host: str = "127.0.0.1"
    port: int = 3001


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_settings() -> Settings:
    load_dotenv(os.environ.get("FSMGRAPH_ENV_FILE", ".env"))
    return Settings(
        app_name=os.environ.get("FSMGRAPH_APP_NAME", DEFAULT_APP_NAME),
        app_version=os.environ.get("FSMGRAPH_APP_VERSION", DEFAULT_APP_VERSION),
        log_level=os.environ.get("FSMGRAPH_LOG_LEVEL", "INFO").upper(),
        max_call_depth=_int_env("FSMGRAPH_MAX_CALL_DEPTH", 32),
        notice_history=_int_env("FSMGRAPH_NOTICE_HISTORY", 200),
        host=os.environ.get("FSMGRAPH_HOST", "127.0.0.1"),
        port=_int_env("FSMGRAPH_PORT", 3001),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
