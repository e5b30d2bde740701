"""
Environment-driven settings.

Every value has a development default so the API boots with only
DATABASE_URL set.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_IMAGE_DIRECTORY = "./storage/images"
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5 MiB
DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"


def env_str(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def pool_max_size() -> int:
    return max(1, env_int("DB_POOL_MAX_SIZE", 5))


def command_timeout_s() -> int:
    return max(1, env_int("DB_COMMAND_TIMEOUT_S", 30))


def acquire_timeout_s() -> int:
    return max(1, env_int("DB_ACQUIRE_TIMEOUT_S", 10))


def image_directory() -> Path:
    return Path(env_str("IMAGE_DIRECTORY", DEFAULT_IMAGE_DIRECTORY))


def max_image_bytes() -> int:
    value = env_int("MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES)
    return value if value > 0 else DEFAULT_MAX_IMAGE_BYTES


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper()


def cors_origins() -> list[str]:
    raw = env_str("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
