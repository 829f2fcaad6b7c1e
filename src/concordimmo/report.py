"""Synthèse des résultats de matching (réponse de l'API, tableau de revue)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pandas as pd

from concordimmo import __version__
from concordimmo.config import MatchingConfig
from concordimmo.matching.confidence import classify
from concordimmo.matching.schema import MatchResult


def build_match_summary(
    results: list[MatchResult],
    source_record_id: str,
    config: MatchingConfig | None = None,
) -> list[dict[str, Any]]:
    """
    Lignes de réponse d'une recherche de matches, dans l'ordre du classement.

    auto_apply_eligible indique seulement le niveau de confiance ; l'application
    effective dépend de la demande de l'appelant.
    """
    cfg = config or MatchingConfig()
    rows: list[dict[str, Any]] = []
    for r in results:
        tier = classify(r.score, cfg.thresholds)
        rows.append(
            {
                "id": f"{source_record_id}-{r.reference_id}",
                "reference_id": r.reference_id,
                "score": r.score,
                "confidence": tier.label,
                "auto_apply_eligible": tier.auto_apply_eligible,
                "criteria": [c.to_dict() for c in r.criteria],
                "reference": r.reference.to_dict(),
            }
        )
    return rows


def build_report_df(
    results: list[MatchResult],
    config: MatchingConfig | None = None,
) -> pd.DataFrame:
    """
    DataFrame de revue : une ligne par candidat retenu (score, niveau, raisons),
    avec la version de configuration et l'horodatage.
    """
    cfg = config or MatchingConfig()
    timestamp = datetime.now().isoformat()
    rows = []
    for rank, r in enumerate(results, start=1):
        rows.append(
            {
                "rank": rank,
                "reference_id": r.reference_id,
                "identifier": r.reference.identifier,
                "score": round(r.score, 4),
                "confidence": classify(r.score, cfg.thresholds).label,
                "reasons": "; ".join(c.description for c in r.criteria),
                "config_version": cfg.version,
                "engine_version": __version__,
                "timestamp": timestamp,
            }
        )
    columns = [
        "rank",
        "reference_id",
        "identifier",
        "score",
        "confidence",
        "reasons",
        "config_version",
        "engine_version",
        "timestamp",
    ]
    return pd.DataFrame(rows, columns=columns)
