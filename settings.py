from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_READINGS_PATH_ENV = "READINGS_PATH"
_CACHE_TTL_ENV = "READINGS_CACHE_TTL_SECONDS"
_WORKER_COUNT_ENV = "ANALYSIS_WORKER_COUNT"
_REPLACEMENT_RATE_ENV = "HEALTH_REPLACEMENT_RATE"
_MAX_PLAUSIBLE_RATE_ENV = "HEALTH_MAX_PLAUSIBLE_RATE"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    readings_path: str
    cache_ttl_seconds: float
    analysis_workers: int
    replacement_rate: float
    max_plausible_rate: float
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_worker_count(default: int) -> int:
    value = os.getenv(_WORKER_COUNT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_float_env(name: str, default: float, allow_zero: bool = False) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    if parsed > 0 or (allow_zero and parsed == 0):
        return parsed
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        readings_path=_read_str_env(_READINGS_PATH_ENV, "./data/battery.json"),
        cache_ttl_seconds=_read_float_env(_CACHE_TTL_ENV, 300.0, allow_zero=True),
        analysis_workers=_read_worker_count(4),
        replacement_rate=_read_float_env(_REPLACEMENT_RATE_ENV, 0.30),
        max_plausible_rate=_read_float_env(_MAX_PLAUSIBLE_RATE_ENV, 1.0),
        log_level=_read_log_level("INFO"),
    )
