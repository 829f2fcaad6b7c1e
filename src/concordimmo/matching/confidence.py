"""Niveaux de confiance et éligibilité à l'application automatique."""

from __future__ import annotations

import math
from dataclasses import dataclass

from concordimmo.config import ConfidenceThresholds

VERY_HIGH = "Very High"
HIGH = "High"
MEDIUM = "Medium"
LOW = "Low"
VERY_LOW = "Very Low"


@dataclass(frozen=True)
class ConfidenceTier:
    """Niveau de confiance discret dérivé d'un score."""

    label: str
    lower_bound: float
    auto_apply_eligible: bool = False

    @property
    def is_surfaced(self) -> bool:
        return self.label != VERY_LOW


def classify(score: float, thresholds: ConfidenceThresholds | None = None) -> ConfidenceTier:
    """
    Associe un score à son niveau de confiance (bornes inférieures inclusives).

    Fonction pure ; un score NaN est classé Very Low.
    """
    th = thresholds or ConfidenceThresholds()
    if score is None or math.isnan(score):
        return ConfidenceTier(VERY_LOW, 0.0)
    if score >= th.auto_apply:
        return ConfidenceTier(VERY_HIGH, th.auto_apply, auto_apply_eligible=True)
    if score >= th.high:
        return ConfidenceTier(HIGH, th.high)
    if score >= th.medium:
        return ConfidenceTier(MEDIUM, th.medium)
    if score >= th.low:
        return ConfidenceTier(LOW, th.low)
    return ConfidenceTier(VERY_LOW, 0.0)


def should_auto_apply(score: float, auto_apply: bool, thresholds: ConfidenceThresholds | None = None) -> bool:
    """Vrai seulement si l'appelant l'a demandé ET si le score atteint le seuil d'application."""
    return auto_apply and classify(score, thresholds).auto_apply_eligible
