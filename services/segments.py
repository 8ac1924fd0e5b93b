"""Discharge segment extraction."""

from __future__ import annotations

from typing import List, Sequence

from models.records import BatteryReading, DischargeSegment

MIN_SEGMENT_READINGS = 2


class SegmentExtractor:
    """Split a chronological reading series into continuous discharge runs.

    Any increase in battery level between two adjacent readings is treated as
    a charging event and closes the current run, no matter how small the
    increase is. Sensor jitter therefore splits segments too.
    """

    def extract(self, readings: Sequence[BatteryReading]) -> List[DischargeSegment]:
        segments: List[DischargeSegment] = []
        current: List[BatteryReading] = []
        previous: BatteryReading | None = None

        for reading in readings:
            if previous is not None and reading.battery_level > previous.battery_level:
                self._close(current, segments)
                current = [reading]
            else:
                current.append(reading)
            previous = reading

        self._close(current, segments)
        return segments

    @staticmethod
    def _close(run: List[BatteryReading], segments: List[DischargeSegment]) -> None:
        # Single readings carry no rate information.
        if len(run) >= MIN_SEGMENT_READINGS:
            segments.append(DischargeSegment(readings=tuple(run)))
