"""Unit tests for health classification."""

from __future__ import annotations

import logging

import pytest

from models.records import HealthStatus
from services.errors import DataQualityWarning, InvariantViolation
from services.health import HealthClassifier, HealthThresholds


@pytest.mark.parametrize(
    ("rate", "expected"),
    [
        (0.0, HealthStatus.unknown),
        (0.05, HealthStatus.healthy),
        (0.2999, HealthStatus.healthy),
        (0.30, HealthStatus.needs_replacement),
        (0.75, HealthStatus.needs_replacement),
        (1.0, HealthStatus.needs_replacement),
    ],
)
def test_classify_thresholds(rate: float, expected: HealthStatus) -> None:
    assert HealthClassifier().classify(rate) is expected


def test_implausible_rate_is_unknown_and_warns(caplog) -> None:
    classifier = HealthClassifier()

    with caplog.at_level(logging.WARNING, logger="services.health"):
        with pytest.warns(DataQualityWarning, match="Impossible daily usage rate"):
            status = classifier.classify(1.5, device_id="device-z")

    assert status is HealthStatus.unknown
    records = [record for record in caplog.records if record.name == "services.health"]
    assert records
    assert getattr(records[0], "device_id", None) == "device-z"
    assert getattr(records[0], "reason", None) == "implausible_rate"


def test_custom_thresholds() -> None:
    classifier = HealthClassifier(HealthThresholds(replacement_rate=0.5, max_plausible_rate=2.0))

    assert classifier.classify(0.45) is HealthStatus.healthy
    assert classifier.classify(0.5) is HealthStatus.needs_replacement
    assert classifier.classify(1.5) is HealthStatus.needs_replacement


@pytest.mark.parametrize("rate", [-0.1, float("nan"), float("inf")])
def test_invalid_rates_are_invariant_violations(rate: float) -> None:
    with pytest.raises(InvariantViolation):
        HealthClassifier().classify(rate)
