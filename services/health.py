"""Health classification from daily usage rates."""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass

from models.records import HealthStatus
from services.errors import DataQualityWarning, InvariantViolation

logger = logging.getLogger(__name__)

# Losing 30% or more of the battery per day means the battery is worn out.
NEEDS_REPLACEMENT_RATE = 0.30
# More than 100% per day is not physically possible for these devices.
MAX_PLAUSIBLE_RATE = 1.0


@dataclass(frozen=True)
class HealthThresholds:
    replacement_rate: float = NEEDS_REPLACEMENT_RATE
    max_plausible_rate: float = MAX_PLAUSIBLE_RATE


class HealthClassifier:
    """Map a daily usage rate to a :class:`HealthStatus`."""

    def __init__(self, thresholds: HealthThresholds | None = None) -> None:
        self.thresholds = thresholds or HealthThresholds()

    def classify(self, daily_usage_rate: float, device_id: str | None = None) -> HealthStatus:
        if not math.isfinite(daily_usage_rate) or daily_usage_rate < 0:
            raise InvariantViolation(
                f"Daily usage rate must be a finite non-negative number, got {daily_usage_rate!r}."
            )

        if daily_usage_rate == 0:
            return HealthStatus.unknown

        if daily_usage_rate > self.thresholds.max_plausible_rate:
            self._report_implausible(daily_usage_rate, device_id)
            return HealthStatus.unknown

        if daily_usage_rate >= self.thresholds.replacement_rate:
            return HealthStatus.needs_replacement
        return HealthStatus.healthy

    def _report_implausible(self, daily_usage_rate: float, device_id: str | None) -> None:
        message = (
            f"Impossible daily usage rate {daily_usage_rate:.3f} "
            f"(ceiling {self.thresholds.max_plausible_rate:.3f}); treating as Unknown"
        )
        logger.warning(
            message,
            extra={
                "device_id": device_id,
                "daily_usage_rate": daily_usage_rate,
                "reason": "implausible_rate",
            },
        )
        warnings.warn(DataQualityWarning(message), stacklevel=3)
