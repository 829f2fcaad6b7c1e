"""Calcul des scores de similarité par champ."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from concordimmo.config import MatchingConfig
from concordimmo.matching.schema import (
    KIND_EXACT,
    KIND_PROXIMITY,
    KIND_SIMILARITY,
    MatchCriterion,
    ReferenceRecord,
    SourceRecord,
)
from concordimmo.matching.similarity import (
    STRING_METHODS,
    distance_km,
    documents_equal,
    numeric_proximity,
    proximity_score,
)
from concordimmo.normalize import norm_text

ADDRESS_STREET_SHARE = 0.7
ADDRESS_NUMBER_SHARE = 0.3


@dataclass(frozen=True)
class FieldScore:
    """Score brut et poids d'un champ comparé, avec son critère affichable éventuel."""

    field: str
    score: float
    weight: float
    criterion: MatchCriterion | None = None


def _pct(score: float) -> int:
    return round(score * 100)


def _finish(
    field_name: str,
    score: float,
    kind: str,
    description: str,
    config: MatchingConfig,
) -> FieldScore:
    """Applique poids et seuil de visibilité ; le score compte même sans critère."""
    weight = config.weights.get(field_name)
    criterion = None
    if score > config.visibility.get(field_name):
        criterion = MatchCriterion(
            kind=kind,
            field=field_name,
            score=score,
            weight=weight,
            description=description,
        )
    return FieldScore(field=field_name, score=score, weight=weight, criterion=criterion)


def score_identifier(source: SourceRecord, ref: ReferenceRecord, config: MatchingConfig) -> FieldScore | None:
    if not source.identifier or not ref.identifier:
        return None
    same = norm_text(source.identifier, lower=False) == norm_text(ref.identifier, lower=False)
    return _finish("identifier", 1.0 if same else 0.0, KIND_EXACT, "Identical property registration", config)


def score_owner_document(source: SourceRecord, ref: ReferenceRecord, config: MatchingConfig) -> FieldScore | None:
    if not source.owner_document or not ref.owner_document:
        return None
    same = documents_equal(source.owner_document, ref.owner_document)
    return _finish("owner_document", 1.0 if same else 0.0, KIND_EXACT, "Identical owner tax document", config)


def score_location(source: SourceRecord, ref: ReferenceRecord, config: MatchingConfig) -> FieldScore | None:
    if source.location is None or ref.location is None:
        return None
    dist = distance_km(source.location, ref.location)
    score = proximity_score(dist, config.search_radius_km)
    return _finish("location", score, KIND_PROXIMITY, f"Distance: {round(dist * 1000)}m", config)


def score_address(source: SourceRecord, ref: ReferenceRecord, config: MatchingConfig) -> FieldScore | None:
    if not (source.street_name and source.street_number and ref.street_name and ref.street_number):
        return None
    street_sim = STRING_METHODS[config.string_method](source.street_name, ref.street_name)
    number_match = 1.0 if norm_text(source.street_number) == norm_text(ref.street_number) else 0.0
    score = street_sim * ADDRESS_STREET_SHARE + number_match * ADDRESS_NUMBER_SHARE
    return _finish("address", score, KIND_SIMILARITY, f"Similar address ({_pct(score)}%)", config)


def score_owner_name(source: SourceRecord, ref: ReferenceRecord, config: MatchingConfig) -> FieldScore | None:
    if not source.owner_name or not ref.owner_name:
        return None
    score = STRING_METHODS[config.string_method](source.owner_name, ref.owner_name)
    return _finish("owner_name", score, KIND_SIMILARITY, f"Similar owner name ({_pct(score)}%)", config)


def _score_numeric(
    field_name: str,
    label: str,
    a: float | None,
    b: float | None,
    config: MatchingConfig,
) -> FieldScore | None:
    score = numeric_proximity(a, b)
    if score is None:
        return None
    return _finish(field_name, score, KIND_SIMILARITY, f"Similar {label} ({_pct(score)}%)", config)


def score_lot_area(source: SourceRecord, ref: ReferenceRecord, config: MatchingConfig) -> FieldScore | None:
    return _score_numeric("lot_area", "lot area", source.lot_area, ref.lot_area, config)


def score_built_area(source: SourceRecord, ref: ReferenceRecord, config: MatchingConfig) -> FieldScore | None:
    return _score_numeric("built_area", "built area", source.built_area, ref.built_area, config)


def score_use_code(source: SourceRecord, ref: ReferenceRecord, config: MatchingConfig) -> FieldScore | None:
    if not source.use_code or not ref.use_code:
        return None
    same = norm_text(source.use_code) == norm_text(ref.use_code)
    return _finish("use_code", 1.0 if same else 0.0, KIND_EXACT, "Identical predominant use", config)


def score_floor_count(source: SourceRecord, ref: ReferenceRecord, config: MatchingConfig) -> FieldScore | None:
    if not config.score_floor_count:
        return None
    a = float(source.floor_count) if source.floor_count is not None else None
    b = float(ref.floor_count) if ref.floor_count is not None else None
    return _score_numeric("floor_count", "floor count", a, b, config)


FieldScorer = Callable[[SourceRecord, ReferenceRecord, MatchingConfig], "FieldScore | None"]

# Ordre d'évaluation = ordre d'affichage des critères
FIELD_SCORERS: tuple[FieldScorer, ...] = (
    score_identifier,
    score_owner_document,
    score_location,
    score_address,
    score_owner_name,
    score_lot_area,
    score_built_area,
    score_use_code,
    score_floor_count,
)


def score_fields(
    source: SourceRecord,
    ref: ReferenceRecord,
    config: MatchingConfig,
) -> list[FieldScore]:
    """
    Compare chaque champ renseigné des deux côtés.

    Returns:
        Liste des FieldScore, un par champ comparable ; les champs absents
        d'un côté n'apparaissent pas.
    """
    scores: list[FieldScore] = []
    for scorer in FIELD_SCORERS:
        fs = scorer(source, ref, config)
        if fs is not None:
            scores.append(fs)
    return scores
