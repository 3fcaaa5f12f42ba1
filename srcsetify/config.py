"""Runtime configuration read from the environment.

Environment variables:
    SRCSETIFY_MAX_WORKERS: Size of the worker pool used for decoding and
        encoding (default ``min(4, cpu_count)``).
    SRCSETIFY_STRICT_FORMAT: When ``1``/``true``, an unrecognised output
        format is rejected instead of falling back to ``jpg`` (default off).
    SRCSETIFY_DEFAULT_DIRECTORY: Directory used in ``srcset`` candidates when
        the caller leaves it blank (default ``images``).
    SRCSETIFY_MAX_UPLOAD_BYTES: Largest accepted upload per image
        (default 25 MiB).
    SRCSETIFY_CORS_ORIGINS: Comma separated list of allowed origins
        (default ``*``).
    SRCSETIFY_MAX_BATCHES: Batches kept in memory before the least recently
        used one is dropped (default 50).
"""

from __future__ import annotations

import os
from typing import List


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


MAX_WORKERS: int = _env_int("SRCSETIFY_MAX_WORKERS", min(4, os.cpu_count() or 1))
STRICT_FORMAT: bool = _env_bool("SRCSETIFY_STRICT_FORMAT")
DEFAULT_DIRECTORY: str = os.getenv("SRCSETIFY_DEFAULT_DIRECTORY", "images").strip() or "images"
MAX_UPLOAD_BYTES: int = _env_int("SRCSETIFY_MAX_UPLOAD_BYTES", 25 * 1024 * 1024)
MAX_BATCHES: int = _env_int("SRCSETIFY_MAX_BATCHES", 50)
CORS_ORIGINS: List[str] = [
    o.strip() for o in os.getenv("SRCSETIFY_CORS_ORIGINS", "*").split(",") if o.strip()
]
