"""Pydantic schemas for raw readings and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.records import (
    BatteryReading,
    DeviceAnalysis,
    DeviceFailure,
    FleetReport,
    HealthStatus,
    ProcessedDevice,
    RiskLevel,
    SchoolSummary,
    SegmentBreakdown,
)
from services.aggregator import DEFAULT_RISK_THRESHOLDS, RiskThresholds, risk_level, risk_score


class ReadingPayload(BaseModel):
    """A raw battery reading as delivered by the data source.

    Accepts both the source's camelCase keys (``serialNumber``, ``academyId``)
    and the snake_case field names.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    device_id: str = Field(..., min_length=1, alias="serialNumber")
    school_id: int = Field(..., alias="academyId")
    battery_level: float = Field(..., ge=0.0, le=1.0, alias="batteryLevel")
    employee_id: str = Field(..., alias="employeeId")
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_reading(self) -> BatteryReading:
        return BatteryReading(
            device_id=self.device_id,
            school_id=self.school_id,
            battery_level=self.battery_level,
            employee_id=self.employee_id,
            timestamp=self.timestamp,
        )


class ProcessedDeviceOut(BaseModel):
    device_id: str
    school_id: int
    current_battery_level: float
    daily_usage_rate: float = Field(..., ge=0.0, description="Fractional loss per day; 0 means unknown.")
    health_status: HealthStatus
    last_reading_time: datetime
    total_readings: int = Field(..., ge=1)

    @classmethod
    def from_device(cls, device: ProcessedDevice) -> "ProcessedDeviceOut":
        return cls(
            device_id=device.device_id,
            school_id=device.school_id,
            current_battery_level=device.current_battery_level,
            daily_usage_rate=device.daily_usage_rate,
            health_status=device.health_status,
            last_reading_time=device.last_reading_time,
            total_readings=device.total_readings,
        )


class SchoolSummaryOut(BaseModel):
    """A school's device health counts and its risk classification."""

    rank: int = Field(..., ge=1)
    school_id: int
    total_devices: int = Field(..., ge=0)
    healthy_devices: int = Field(..., ge=0)
    unhealthy_devices: int = Field(..., ge=0)
    unknown_devices: int = Field(..., ge=0)
    unhealthy_percentage: float = Field(..., ge=0.0, le=100.0)
    risk_score: float
    risk_level: RiskLevel
    devices: List[ProcessedDeviceOut] = Field(default_factory=list)

    @classmethod
    def from_summary(
        cls,
        summary: SchoolSummary,
        rank: int,
        thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
    ) -> "SchoolSummaryOut":
        return cls(
            rank=rank,
            school_id=summary.school_id,
            total_devices=summary.total_devices,
            healthy_devices=summary.healthy_devices,
            unhealthy_devices=summary.unhealthy_devices,
            unknown_devices=summary.unknown_devices,
            unhealthy_percentage=summary.unhealthy_percentage,
            risk_score=risk_score(summary, thresholds),
            risk_level=risk_level(summary, thresholds),
            devices=[ProcessedDeviceOut.from_device(device) for device in summary.devices],
        )


class DeviceFailureOut(BaseModel):
    device_id: str
    reason: str

    @classmethod
    def from_failure(cls, failure: DeviceFailure) -> "DeviceFailureOut":
        return cls(device_id=failure.device_id, reason=failure.reason)


class FleetReportOut(BaseModel):
    """Ranked schools for one analysis run, most urgent first."""

    generated_at: datetime
    reading_count: int = Field(..., ge=0)
    device_count: int = Field(..., ge=0)
    processing_ms: Optional[int] = Field(
        default=None, description="Duration in milliseconds of the analysis run."
    )
    schools: List[SchoolSummaryOut] = Field(default_factory=list)
    failures: List[DeviceFailureOut] = Field(default_factory=list)

    @classmethod
    def from_report(
        cls,
        report: FleetReport,
        thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
    ) -> "FleetReportOut":
        return cls(
            generated_at=report.generated_at,
            reading_count=report.reading_count,
            device_count=report.device_count,
            processing_ms=report.processing_ms,
            schools=[
                SchoolSummaryOut.from_summary(summary, rank, thresholds)
                for rank, summary in enumerate(report.schools, start=1)
            ],
            failures=[DeviceFailureOut.from_failure(failure) for failure in report.failures],
        )


class SegmentBreakdownOut(BaseModel):
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

    @classmethod
    def from_segment(cls, segment: SegmentBreakdown) -> "SegmentBreakdownOut":
        return cls(
            index=segment.index,
            start_time=segment.start_time,
            end_time=segment.end_time,
            start_level=segment.start_level,
            end_level=segment.end_level,
            drop=segment.drop,
            elapsed_hours=segment.elapsed_hours,
            daily_rate=segment.daily_rate,
            reading_count=segment.reading_count,
            contributes=segment.contributes,
        )


class DeviceAnalysisOut(BaseModel):
    """Processed device plus the discharge segments its rate was derived from."""

    device: ProcessedDeviceOut
    daily_usage_rate: float
    segments: List[SegmentBreakdownOut] = Field(default_factory=list)

    @classmethod
    def from_analysis(cls, analysis: DeviceAnalysis) -> "DeviceAnalysisOut":
        return cls(
            device=ProcessedDeviceOut.from_device(analysis.device),
            daily_usage_rate=analysis.breakdown.daily_rate,
            segments=[SegmentBreakdownOut.from_segment(row) for row in analysis.breakdown.segments],
        )
