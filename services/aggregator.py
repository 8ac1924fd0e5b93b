"""School-level aggregation and replacement priority ranking."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from operator import attrgetter
from typing import Dict, Iterable, List

from models.records import HealthStatus, ProcessedDevice, RiskLevel, SchoolSummary
from services.errors import InvariantViolation

logger = logging.getLogger(__name__)

ABSOLUTE_WEIGHT = 0.6
PERCENTAGE_WEIGHT = 0.4
# Scales unhealthy device counts into the same range as percentages.
ABSOLUTE_SCALE = 10.0

CRITICAL_SCORE = 50.0
HIGH_SCORE = 25.0
MEDIUM_SCORE = 10.0


@dataclass(frozen=True)
class RiskThresholds:
    absolute_weight: float = ABSOLUTE_WEIGHT
    percentage_weight: float = PERCENTAGE_WEIGHT
    absolute_scale: float = ABSOLUTE_SCALE
    critical: float = CRITICAL_SCORE
    high: float = HIGH_SCORE
    medium: float = MEDIUM_SCORE


DEFAULT_RISK_THRESHOLDS = RiskThresholds()


def risk_score(summary: SchoolSummary, thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS) -> float:
    """Composite urgency score; informational only, not used for ranking."""
    absolute_score = summary.unhealthy_devices * thresholds.absolute_scale
    return (
        absolute_score * thresholds.absolute_weight
        + summary.unhealthy_percentage * thresholds.percentage_weight
    )


def risk_level(summary: SchoolSummary, thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS) -> RiskLevel:
    score = risk_score(summary, thresholds)
    if score >= thresholds.critical:
        return RiskLevel.critical
    if score >= thresholds.high:
        return RiskLevel.high
    if score >= thresholds.medium:
        return RiskLevel.medium
    return RiskLevel.low


class SchoolAggregator:
    """Group processed devices by school and rank schools by urgency.

    Ranking keys, all descending: unhealthy device count, unhealthy
    percentage, total devices. Schools tied on every key keep the order in
    which they were first seen. Each summary lists its devices by device id.
    """

    def __init__(self, risk_thresholds: RiskThresholds | None = None) -> None:
        self.risk_thresholds = risk_thresholds or DEFAULT_RISK_THRESHOLDS

    def aggregate(self, devices: Iterable[ProcessedDevice]) -> List[SchoolSummary]:
        groups = self.group_by_school(devices)
        summaries = [self.summarize(school_id, members) for school_id, members in groups.items()]
        ranked = self.rank(summaries)
        logger.info(
            "Schools ranked",
            extra={
                "school_count": len(ranked),
                "device_count": sum(summary.total_devices for summary in ranked),
            },
        )
        return ranked

    @staticmethod
    def group_by_school(devices: Iterable[ProcessedDevice]) -> Dict[int, List[ProcessedDevice]]:
        grouped: Dict[int, List[ProcessedDevice]] = {}
        for device in devices:
            grouped.setdefault(device.school_id, []).append(device)
        return grouped

    @staticmethod
    def summarize(school_id: int, devices: List[ProcessedDevice]) -> SchoolSummary:
        total = len(devices)
        counts = Counter(device.health_status for device in devices)
        healthy = counts[HealthStatus.healthy]
        unhealthy = counts[HealthStatus.needs_replacement]
        unknown = counts[HealthStatus.unknown]

        if healthy + unhealthy + unknown != total:
            raise InvariantViolation(
                f"School {school_id}: status counts ({healthy} healthy, {unhealthy} unhealthy, "
                f"{unknown} unknown) do not add up to {total} devices."
            )

        percentage = unhealthy / total * 100 if total else 0.0
        return SchoolSummary(
            school_id=school_id,
            total_devices=total,
            healthy_devices=healthy,
            unhealthy_devices=unhealthy,
            unknown_devices=unknown,
            unhealthy_percentage=percentage,
            devices=tuple(sorted(devices, key=attrgetter("device_id"))),
        )

    @staticmethod
    def rank(summaries: Iterable[SchoolSummary]) -> List[SchoolSummary]:
        return sorted(
            summaries,
            key=lambda summary: (
                -summary.unhealthy_devices,
                -summary.unhealthy_percentage,
                -summary.total_devices,
            ),
        )
