"""Application settings and configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import dotenv_values

DEFAULT_UPSTREAM_API_URL_BASE = "https://app.parcelx.in/api/v1/track_order"

ENV_FILE_PATH = Path(os.getenv("ENV_FILE", ".env"))


@dataclass(frozen=True, slots=True)
class Settings:
    """Container for configuration values loaded from environment variables."""

    upstream_api_url_base: str
    upstream_api_token: Optional[str]
    upstream_timeout: float
    host: str
    port: int
    allowed_origins: Tuple[str, ...]
    log_level: str

    @property
    def token_configured(self) -> bool:
        return bool(self.upstream_api_token)


def _read_float(name: str, default: float, *, greater_than: Optional[float] = None) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        value = default
    else:
        try:
            value = float(raw)
        except ValueError as exc:
            raise ValueError(f"Environment variable {name} must be a float, got {raw!r}") from exc
    if greater_than is not None and value <= greater_than:
        raise ValueError(f"Environment variable {name} must be > {greater_than}, got {value}")
    return value


def _read_int(
    name: str,
    default: int,
    *,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        value = default
    else:
        try:
            value = int(raw)
        except ValueError as exc:
            raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise ValueError(f"Environment variable {name} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"Environment variable {name} must be <= {maximum}, got {value}")
    return value


def _read_origins(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    origins = []
    for item in raw.split(","):
        origin = item.strip().rstrip("/")
        if origin and origin not in origins:
            origins.append(origin)
    return tuple(origins)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read and memoise :class:`Settings` from environment variables."""

    # An empty token is the same as no token: requests are refused with 500.
    token = os.getenv("UPSTREAM_API_TOKEN") or None

    return Settings(
        upstream_api_url_base=os.getenv("UPSTREAM_API_URL_BASE") or DEFAULT_UPSTREAM_API_URL_BASE,
        upstream_api_token=token,
        upstream_timeout=_read_float("UPSTREAM_TIMEOUT", 15.0, greater_than=0),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_read_int("PORT", 3000, minimum=1, maximum=65535),
        allowed_origins=_read_origins("ALLOWED_ORIGINS"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def load_env_file(path: Optional[Path] = None) -> Dict[str, str]:
    """Load ``KEY=VALUE`` pairs from a ``.env`` file into ``os.environ``.

    Values in the file override the current environment. Returns the mapping
    that was applied, or an empty dict when the file does not exist.
    """

    env_path = Path(path) if path is not None else ENV_FILE_PATH
    if not env_path.is_file():
        return {}

    loaded: Dict[str, str] = {}
    for key, value in dotenv_values(env_path).items():
        # Bare keys without "=" come back as None.
        resolved = "" if value is None else value
        os.environ[key] = resolved
        loaded[key] = resolved
    return loaded


__all__ = [
    "DEFAULT_UPSTREAM_API_URL_BASE",
    "ENV_FILE_PATH",
    "Settings",
    "get_settings",
    "load_env_file",
]
