"""Tests des niveaux de confiance."""

import pytest

from concordimmo.config import ConfidenceThresholds
from concordimmo.matching.confidence import classify, should_auto_apply


@pytest.mark.parametrize(
    ("score", "label"),
    [
        (1.0, "Very High"),
        (0.95, "Very High"),
        (0.9499, "High"),
        (0.85, "High"),
        (0.7, "Medium"),
        (0.65, "Medium"),
        (0.4, "Low"),
        (0.3999, "Very Low"),
        (0.0, "Very Low"),
    ],
)
def test_classify_bounds_inclusive(score: float, label: str) -> None:
    assert classify(score).label == label


def test_classify_nan_is_very_low() -> None:
    tier = classify(float("nan"))
    assert tier.label == "Very Low"
    assert not tier.is_surfaced


def test_only_very_high_is_auto_apply_eligible() -> None:
    assert classify(0.96).auto_apply_eligible
    assert not classify(0.94).auto_apply_eligible


def test_custom_thresholds() -> None:
    th = ConfidenceThresholds(auto_apply=0.9, high=0.8, medium=0.6, low=0.3)
    assert classify(0.92, th).label == "Very High"
    assert classify(0.35, th).label == "Low"


def test_should_auto_apply_requires_caller_intent() -> None:
    assert should_auto_apply(0.97, True)
    assert not should_auto_apply(0.97, False)
    assert not should_auto_apply(0.90, True)
