"""Per-device battery analysis."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from operator import attrgetter
from typing import Dict, Iterable, List, Sequence

from models.records import (
    AnalysisBatch,
    BatteryReading,
    DeviceAnalysis,
    DeviceFailure,
    HealthStatus,
    ProcessedDevice,
    UsageBreakdown,
)
from services.errors import InvariantViolation
from services.health import HealthClassifier
from services.segments import SegmentExtractor
from services.usage import UsageRateEstimator

logger = logging.getLogger(__name__)


class DeviceAnalyzer:
    """Turn raw readings into one :class:`ProcessedDevice` per device."""

    def __init__(
        self,
        extractor: SegmentExtractor | None = None,
        estimator: UsageRateEstimator | None = None,
        classifier: HealthClassifier | None = None,
    ) -> None:
        self.extractor = extractor or SegmentExtractor()
        self.estimator = estimator or UsageRateEstimator()
        self.classifier = classifier or HealthClassifier()

    def analyze(self, readings: Sequence[BatteryReading]) -> ProcessedDevice:
        """Analyze every reading of a single device."""
        return self.analyze_detailed(readings).device

    def analyze_detailed(self, readings: Sequence[BatteryReading]) -> DeviceAnalysis:
        """Analyze a device and keep the segment-by-segment breakdown."""
        ordered = self._sorted_readings(readings)
        device_id = ordered[0].device_id
        latest = ordered[-1]

        if len(ordered) == 1:
            logger.debug(
                "Single reading; usage rate unknown",
                extra={"device_id": device_id, "reading_count": 1},
            )
            return DeviceAnalysis(
                device=self._build_device(latest, 0.0, HealthStatus.unknown, 1),
                breakdown=UsageBreakdown(daily_rate=0.0),
            )

        segments = self.extractor.extract(ordered)
        breakdown = self.estimator.estimate(segments, verbose=True)
        status = self.classifier.classify(breakdown.daily_rate, device_id=device_id)
        logger.debug(
            "Device analyzed",
            extra={
                "device_id": device_id,
                "reading_count": len(ordered),
                "segment_count": len(segments),
                "daily_usage_rate": breakdown.daily_rate,
            },
        )
        return DeviceAnalysis(
            device=self._build_device(latest, breakdown.daily_rate, status, len(ordered)),
            breakdown=breakdown,
        )

    def analyze_all(
        self, readings: Iterable[BatteryReading], executor: Executor | None = None
    ) -> List[ProcessedDevice]:
        """Analyze a mixed batch, one result per distinct device.

        Devices whose analysis faults are logged and left out.
        """
        return list(self.analyze_batch(readings, executor=executor).devices)

    def analyze_batch(
        self, readings: Iterable[BatteryReading], executor: Executor | None = None
    ) -> AnalysisBatch:
        groups = self.group_by_device(readings)
        if executor is None:
            outcomes = [self._analyze_isolated(device_id, group) for device_id, group in groups.items()]
        else:
            outcomes = list(executor.map(self._analyze_isolated, groups.keys(), groups.values()))

        devices: List[ProcessedDevice] = []
        failures: List[DeviceFailure] = []
        for outcome in outcomes:
            if isinstance(outcome, DeviceFailure):
                failures.append(outcome)
            else:
                devices.append(outcome)

        if failures:
            logger.warning(
                "Some devices could not be analyzed",
                extra={"device_count": len(devices), "error_count": len(failures)},
            )
        return AnalysisBatch(devices=tuple(devices), failures=tuple(failures))

    @staticmethod
    def group_by_device(readings: Iterable[BatteryReading]) -> Dict[str, List[BatteryReading]]:
        grouped: Dict[str, List[BatteryReading]] = {}
        for reading in readings:
            grouped.setdefault(reading.device_id, []).append(reading)
        return grouped

    def _analyze_isolated(
        self, device_id: str, readings: List[BatteryReading]
    ) -> ProcessedDevice | DeviceFailure:
        try:
            return self.analyze(readings)
        except Exception as exc:  # one faulty device must not abort the batch
            logger.exception(
                "Device analysis failed",
                extra={"device_id": device_id, "reading_count": len(readings), "reason": str(exc)},
            )
            return DeviceFailure(device_id=device_id, reason=str(exc))

    @staticmethod
    def _sorted_readings(readings: Sequence[BatteryReading]) -> List[BatteryReading]:
        if not readings:
            raise ValueError("Cannot analyze a device without readings.")

        device_ids = {reading.device_id for reading in readings}
        if len(device_ids) > 1:
            raise InvariantViolation(
                f"Expected readings for a single device, got {sorted(device_ids)!r}."
            )
        # sorted() is stable, so equal timestamps keep their input order.
        return sorted(readings, key=attrgetter("timestamp"))

    @staticmethod
    def _build_device(
        latest: BatteryReading,
        daily_usage_rate: float,
        status: HealthStatus,
        total_readings: int,
    ) -> ProcessedDevice:
        return ProcessedDevice(
            device_id=latest.device_id,
            school_id=latest.school_id,
            current_battery_level=latest.battery_level,
            daily_usage_rate=daily_usage_rate,
            health_status=status,
            last_reading_time=latest.timestamp,
            total_readings=total_readings,
        )
