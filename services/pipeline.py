"""Fleet analysis orchestration: load readings, analyze devices, rank schools."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

from datastore.readings import CachedReadingProvider, build_default_provider
from models.records import BatteryReading, DeviceAnalysis, FleetReport, SchoolSummary
from services.aggregator import SchoolAggregator
from services.analyzer import DeviceAnalyzer
from services.health import HealthClassifier, HealthThresholds
from settings import get_settings

logger = logging.getLogger(__name__)


class FleetAnalysisService:
    """Coordinates the reading provider, per-device analysis and school ranking."""

    def __init__(
        self,
        provider: CachedReadingProvider,
        analyzer: DeviceAnalyzer,
        aggregator: SchoolAggregator,
        workers: int = 4,
    ) -> None:
        self.provider = provider
        self.analyzer = analyzer
        self.aggregator = aggregator
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="device-analysis")

    def report(self) -> FleetReport:
        """Analyze the provider's current batch of readings."""
        return self.analyze_readings(self.provider.load())

    def analyze_readings(self, readings: Iterable[BatteryReading]) -> FleetReport:
        """Analyze an explicit batch of readings."""
        start_time = time.perf_counter()
        batch_readings = list(readings)

        batch = self.analyzer.analyze_batch(batch_readings, executor=self.executor)
        schools = self.aggregator.aggregate(batch.devices)

        processing_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Fleet analysis complete",
            extra={
                "reading_count": len(batch_readings),
                "device_count": len(batch.devices),
                "school_count": len(schools),
                "error_count": len(batch.failures),
                "processing_ms": processing_ms,
            },
        )
        return FleetReport(
            generated_at=datetime.now(timezone.utc),
            reading_count=len(batch_readings),
            device_count=len(batch.devices),
            processing_ms=processing_ms,
            schools=tuple(schools),
            failures=batch.failures,
        )

    def school(self, school_id: int) -> Tuple[int, SchoolSummary]:
        """Return a school's 1-based priority rank together with its summary."""
        for rank, summary in enumerate(self.report().schools, start=1):
            if summary.school_id == school_id:
                return rank, summary
        raise KeyError(f"School {school_id!r} not found.")

    def device_analysis(self, device_id: str) -> DeviceAnalysis:
        readings: List[BatteryReading] = [
            reading for reading in self.provider.load() if reading.device_id == device_id
        ]
        if not readings:
            raise KeyError(f"Device {device_id!r} not found.")
        return self.analyzer.analyze_detailed(readings)

    def refresh(self) -> None:
        """Drop cached readings so the next call reloads from the source."""
        self.provider.invalidate()

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)


@lru_cache
def build_default_service(
    workers: Optional[int] = None,
) -> FleetAnalysisService:
    """Factory that wires the service from settings."""
    settings = get_settings()
    classifier = HealthClassifier(
        HealthThresholds(
            replacement_rate=settings.replacement_rate,
            max_plausible_rate=settings.max_plausible_rate,
        )
    )
    return FleetAnalysisService(
        provider=build_default_provider(),
        analyzer=DeviceAnalyzer(classifier=classifier),
        aggregator=SchoolAggregator(),
        workers=workers or settings.analysis_workers,
    )
