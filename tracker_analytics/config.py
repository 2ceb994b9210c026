from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Config:
    redis_url: str
    database_path: str
    host: str
    port: int
    cache_timeout_seconds: float


def _env(name: str, default: str) -> str:
    value = os.getenv(name, default).strip()
    if not value:
        raise ValueError(f"Environment variable {name} must not be empty")
    return value


def _positive_int_env(name: str, default: str) -> int:
    value = _env(name, default)
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc

    if parsed <= 0:
        raise ValueError(f"Environment variable {name} must be positive")
    return parsed


def _positive_float_env(name: str, default: str) -> float:
    value = _env(name, default)
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number") from exc

    if parsed <= 0:
        raise ValueError(f"Environment variable {name} must be positive")
    return parsed


def load_config() -> Config:
    return Config(
        redis_url=_env("REDIS_URL", "redis://localhost:6379/0"),
        database_path=_env("DATABASE_PATH", "tracker_analytics.db"),
        host=_env("HOST", "0.0.0.0"),
        port=_positive_int_env("PORT", "3210"),
        cache_timeout_seconds=_positive_float_env("CACHE_TIMEOUT_SECONDS", "2"),
    )
