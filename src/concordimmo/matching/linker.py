"""Moteur de matching : candidats, agrégation pondérée des scores, classement."""

from __future__ import annotations

import logging

from concordimmo.config import MatchingConfig
from concordimmo.matching.blockers import ReferenceReader, retrieve_candidates
from concordimmo.matching.confidence import ConfidenceTier, classify
from concordimmo.matching.schema import MatchResult, ReferenceRecord, SourceRecord
from concordimmo.matching.scorers import score_fields

logger = logging.getLogger(__name__)


class PropertyMatcher:
    """Moteur de matching entre une fiche collectée et le cadastre municipal.

    Sans état entre deux appels : seul le lecteur de référence est partagé.
    """

    def __init__(self, reader: ReferenceReader, config: MatchingConfig | None = None) -> None:
        self.reader = reader
        self.config = config or MatchingConfig()
        self.min_score = self.config.thresholds.low

    def score_candidate(self, source: SourceRecord, reference: ReferenceRecord) -> MatchResult:
        """
        Calcule le score global (pondéré, normalisé) entre la fiche et un candidat.

        Tous les champs comparables comptent dans le score ; seuls ceux au-dessus
        de leur seuil de visibilité produisent un critère.
        """
        total_weight = 0.0
        weighted_sum = 0.0
        details: dict[str, float] = {}
        criteria = []

        for fs in score_fields(source, reference, self.config):
            total_weight += fs.weight
            weighted_sum += fs.score * fs.weight
            details[fs.field] = fs.score
            if fs.criterion is not None:
                criteria.append(fs.criterion)

        score = weighted_sum / total_weight if total_weight > 0 else 0.0
        score = min(1.0, max(0.0, score))
        return MatchResult(
            reference_id=reference.id,
            score=score,
            criteria=criteria,
            reference=reference,
            details=details,
        )

    def find_matches(self, source: SourceRecord, municipality: str) -> list[MatchResult]:
        """
        Recherche et classe les correspondances possibles d'une fiche.

        Lecture seule. Returns:
            MatchResult de score >= seuil bas, triés par score décroissant
            (tri stable : à égalité, ordre de récupération).
        """
        candidates = retrieve_candidates(self.reader, source, municipality, self.config)

        results: list[MatchResult] = []
        for reference in candidates:
            result = self.score_candidate(source, reference)
            logger.debug("reference=%s score=%.3f details=%s", reference.id, result.score, result.details)
            if result.score >= self.min_score:
                results.append(result)

        results.sort(key=lambda r: r.score, reverse=True)
        logger.info(
            "%d correspondance(s) retenue(s) sur %d candidat(s) (municipality=%s)",
            len(results),
            len(candidates),
            municipality,
        )
        return results

    def classify(self, score: float) -> ConfidenceTier:
        return classify(score, self.config.thresholds)
