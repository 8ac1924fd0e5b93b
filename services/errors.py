"""Error taxonomy for the analysis pipeline."""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for faults raised by the analysis pipeline."""


class InvariantViolation(AnalysisError):
    """A structurally impossible value reached the pipeline.

    Signals a logic bug upstream; callers should not try to recover from it.
    """


class DataQualityWarning(UserWarning):
    """A measurement was discarded because it is physically implausible."""
