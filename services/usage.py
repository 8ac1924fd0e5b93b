"""Duration-weighted daily usage rate estimation."""

from __future__ import annotations

import logging
from typing import Iterable, List

from models.records import DischargeSegment, SegmentBreakdown, UsageBreakdown
from services.errors import InvariantViolation

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24.0


class UsageRateEstimator:
    """Combine discharge segments into one daily battery loss estimate.

    Each usable segment yields ``drop / elapsed_hours * 24``; the estimate is
    the mean of those rates weighted by each segment's elapsed hours. A result
    of ``0.0`` means there was not enough data, not that the battery is
    lossless.
    """

    def estimate(
        self, segments: Iterable[DischargeSegment], verbose: bool = False
    ) -> float | UsageBreakdown:
        """Return the daily rate, or the full segment breakdown when ``verbose``."""
        breakdown = self._breakdown(segments)
        if verbose:
            return breakdown
        return breakdown.daily_rate

    def _breakdown(self, segments: Iterable[DischargeSegment]) -> UsageBreakdown:
        rows: List[SegmentBreakdown] = []
        weighted_total = 0.0
        total_weight = 0.0

        for index, segment in enumerate(segments):
            elapsed = segment.elapsed_hours
            if elapsed < 0:
                raise InvariantViolation(
                    f"Segment {index} for device {segment.first.device_id!r} has negative "
                    f"elapsed time ({elapsed:.3f}h); readings must be sorted chronologically."
                )

            drop = segment.drop
            contributes = elapsed > 0 and drop > 0
            daily_rate = drop / elapsed * HOURS_PER_DAY if elapsed > 0 else 0.0
            if contributes:
                weighted_total += daily_rate * elapsed
                total_weight += elapsed
                logger.debug(
                    "Segment %d: %.3f drop over %.1fh = %.3f daily rate",
                    index,
                    drop,
                    elapsed,
                    daily_rate,
                    extra={"device_id": segment.first.device_id},
                )

            rows.append(
                SegmentBreakdown(
                    index=index,
                    start_time=segment.first.timestamp,
                    end_time=segment.last.timestamp,
                    start_level=segment.first.battery_level,
                    end_level=segment.last.battery_level,
                    drop=drop,
                    elapsed_hours=elapsed,
                    daily_rate=daily_rate,
                    reading_count=len(segment),
                    contributes=contributes,
                )
            )

        daily_rate = weighted_total / total_weight if total_weight > 0 else 0.0
        return UsageBreakdown(daily_rate=daily_rate, segments=tuple(rows))
