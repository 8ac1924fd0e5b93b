from __future__ import annotations

from typing import Iterable

from datastore.readings import build_default_provider
from services.pipeline import build_default_service
from settings import get_settings


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


_CACHES = (get_settings, build_default_provider, build_default_service)


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    readings_path = tmp_path / "battery.json"

    monkeypatch.setenv("READINGS_PATH", str(readings_path))
    monkeypatch.setenv("READINGS_CACHE_TTL_SECONDS", "0")
    monkeypatch.setenv("ANALYSIS_WORKER_COUNT", "2")
    monkeypatch.setenv("HEALTH_REPLACEMENT_RATE", "0.25")
    monkeypatch.setenv("HEALTH_MAX_PLAUSIBLE_RATE", "1.2")
    monkeypatch.setenv("LOG_LEVEL", " debug ")
    _clear_caches(_CACHES)

    service = build_default_service()

    try:
        settings = get_settings()
        assert settings.log_level == "DEBUG"
        assert service.provider.source.path == readings_path
        assert service.provider.policy.ttl_seconds == 0
        assert service.executor._max_workers == 2
        thresholds = service.analyzer.classifier.thresholds
        assert thresholds.replacement_rate == 0.25
        assert thresholds.max_plausible_rate == 1.2
    finally:
        service.shutdown()
        _clear_caches(_CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("READINGS_CACHE_TTL_SECONDS", "-5")
    monkeypatch.setenv("ANALYSIS_WORKER_COUNT", "many")
    monkeypatch.setenv("HEALTH_REPLACEMENT_RATE", "")
    monkeypatch.setenv("HEALTH_MAX_PLAUSIBLE_RATE", "0")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.cache_ttl_seconds == 300.0
        assert settings.analysis_workers == 4
        assert settings.replacement_rate == 0.30
        assert settings.max_plausible_rate == 1.0
    finally:
        get_settings.cache_clear()


def test_blank_readings_path_uses_default(monkeypatch) -> None:
    monkeypatch.setenv("READINGS_PATH", "   ")
    _clear_caches(_CACHES)

    try:
        assert get_settings().readings_path == "./data/battery.json"
        assert str(build_default_provider().source.path) == "data/battery.json"
    finally:
        _clear_caches(_CACHES)
