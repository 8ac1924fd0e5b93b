"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Tuple


class HealthStatus(str, Enum):
    """Health category derived from a device's daily usage rate."""

    healthy = "Healthy"
    needs_replacement = "Needs Replacement"
    unknown = "Unknown"


class RiskLevel(str, Enum):
    """Bucketed school risk label."""

    critical = "Critical"
    high = "High"
    medium = "Medium"
    low = "Low"


@dataclass(frozen=True, slots=True)
class BatteryReading:
    """A single battery level sample reported by a device."""

    device_id: str
    school_id: int
    battery_level: float
    employee_id: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class DischargeSegment:
    """Consecutive readings of one device with non-increasing battery level."""

    readings: Tuple[BatteryReading, ...]

    @property
    def first(self) -> BatteryReading:
        return self.readings[0]

    @property
    def last(self) -> BatteryReading:
        return self.readings[-1]

    @property
    def drop(self) -> float:
        return self.first.battery_level - self.last.battery_level

    @property
    def elapsed_hours(self) -> float:
        return (self.last.timestamp - self.first.timestamp).total_seconds() / 3600

    def __len__(self) -> int:
        return len(self.readings)


@dataclass(frozen=True, slots=True)
class ProcessedDevice:
    device_id: str
    school_id: int
    current_battery_level: float
    daily_usage_rate: float
    health_status: HealthStatus
    last_reading_time: datetime
    total_readings: int


@dataclass(frozen=True, slots=True)
class SchoolSummary:
    school_id: int
    total_devices: int
    healthy_devices: int
    unhealthy_devices: int
    unknown_devices: int
    unhealthy_percentage: float
    devices: Tuple[ProcessedDevice, ...] = ()


@dataclass(frozen=True, slots=True)
class SegmentBreakdown:
    """Diagnostic view of a single discharge segment."""

    index: int
    start_time: datetime
    end_time: datetime
    start_level: float
    end_level: float
    drop: float
    elapsed_hours: float
    daily_rate: float
    reading_count: int
    contributes: bool


@dataclass(frozen=True, slots=True)
class UsageBreakdown:
    daily_rate: float
    segments: Tuple[SegmentBreakdown, ...] = ()


@dataclass(frozen=True, slots=True)
class DeviceAnalysis:
    device: ProcessedDevice
    breakdown: UsageBreakdown


@dataclass(frozen=True, slots=True)
class DeviceFailure:
    """A device whose analysis faulted and was left out of the batch."""

    device_id: str
    reason: str


@dataclass(frozen=True, slots=True)
class AnalysisBatch:
    devices: Tuple[ProcessedDevice, ...] = ()
    failures: Tuple[DeviceFailure, ...] = ()


@dataclass(frozen=True, slots=True)
class FleetReport:
    """Ranked schools plus bookkeeping for one analysis run."""

    generated_at: datetime
    reading_count: int
    device_count: int
    processing_ms: int
    schools: Tuple[SchoolSummary, ...] = ()
    failures: Tuple[DeviceFailure, ...] = ()
