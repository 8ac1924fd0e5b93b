"""Reading sources and the time-boxed reading cache."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Callable, Iterable, List, Optional, Protocol, Tuple

from pydantic import TypeAdapter, ValidationError

from app.schemas import ReadingPayload
from models.records import BatteryReading
from settings import get_settings

logger = logging.getLogger(__name__)

_PAYLOADS = TypeAdapter(List[ReadingPayload])


class ReadingSourceError(ValueError):
    """Raised when a batch of readings cannot be loaded or validated."""


class ReadingSource(Protocol):
    def load(self) -> List[BatteryReading]:
        ...


def parse_readings(data: object) -> List[BatteryReading]:
    """Validate decoded JSON records and convert them to readings."""
    try:
        payloads = _PAYLOADS.validate_python(data)
    except ValidationError as exc:
        raise ReadingSourceError(
            f"Failed to load battery data: invalid data format ({exc.error_count()} errors)"
        ) from exc
    return [payload.to_reading() for payload in payloads]


class JsonFileReadingSource:
    """Load a JSON array of readings from disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> List[BatteryReading]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ReadingSourceError(f"Failed to load battery data: {exc}") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ReadingSourceError(f"Failed to load battery data: {exc}") from exc

        return parse_readings(data)

    def __repr__(self) -> str:
        return f"JsonFileReadingSource({str(self.path)!r})"


class StaticReadingSource:
    """An in-memory batch of readings."""

    def __init__(self, readings: Iterable[BatteryReading]) -> None:
        self._readings: Tuple[BatteryReading, ...] = tuple(readings)

    def load(self) -> List[BatteryReading]:
        return list(self._readings)

    def __repr__(self) -> str:
        return f"StaticReadingSource({len(self._readings)} readings)"


@dataclass(frozen=True)
class CachePolicy:
    """How long a loaded batch may be served before reloading.

    A ``ttl_seconds`` of zero disables caching.
    """

    ttl_seconds: float = 300.0

    def is_fresh(self, loaded_at: float, now: float) -> bool:
        return self.ttl_seconds > 0 and (now - loaded_at) < self.ttl_seconds


class CachedReadingProvider:
    """Serve readings from a source, reusing the last batch while it is fresh."""

    def __init__(
        self,
        source: ReadingSource,
        policy: CachePolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self.policy = policy or CachePolicy()
        self._clock = clock
        self._cache: Optional[Tuple[BatteryReading, ...]] = None
        self._loaded_at = 0.0
        self._lock = Lock()

    def load(self) -> List[BatteryReading]:
        with self._lock:
            now = self._clock()
            if self._cache is not None and self.policy.is_fresh(self._loaded_at, now):
                return list(self._cache)

            try:
                readings = self.source.load()
            except ReadingSourceError as exc:
                logger.error(
                    "Error loading battery data",
                    extra={"source": repr(self.source), "reason": str(exc)},
                )
                raise

            self._cache = tuple(readings)
            self._loaded_at = now
            logger.info(
                "Loaded battery readings",
                extra={"source": repr(self.source), "reading_count": len(readings)},
            )
            return list(self._cache)

    def invalidate(self) -> None:
        with self._lock:
            self._cache = None
            self._loaded_at = 0.0


@lru_cache
def build_default_provider(
    path: Optional[str] = None,
    ttl_seconds: Optional[float] = None,
) -> CachedReadingProvider:
    settings = get_settings()
    readings_path = settings.readings_path if path is None else path
    if not readings_path:
        raise ReadingSourceError("Failed to load battery data: no readings path configured")
    ttl = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
    source = JsonFileReadingSource(Path(readings_path))
    return CachedReadingProvider(source=source, policy=CachePolicy(ttl_seconds=ttl))
