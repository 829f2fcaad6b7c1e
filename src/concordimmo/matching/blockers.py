"""Sélection des candidats : filtres peu coûteux pour réduire l'espace de recherche."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from concordimmo.config import ConcordImmoError, MatchingConfig
from concordimmo.matching.schema import ReferenceRecord, SourceRecord

logger = logging.getLogger(__name__)


class ValidationError(ConcordImmoError):
    """La fiche source n'a aucun champ exploitable pour la recherche de candidats."""


@dataclass(frozen=True)
class CandidateFilter:
    """
    Filtre disjonctif de recherche de candidats.

    Un enregistrement est candidat s'il satisfait au moins une clause :
    inscription égale, document égal, (rue contient ET numéro égal),
    nom du propriétaire contient, ou distance <= radius_km.
    """

    identifier: str | None = None
    owner_document: str | None = None
    street_name: str | None = None
    street_number: str | None = None
    owner_name: str | None = None
    location: tuple[float, float] | None = None
    radius_km: float = 0.1

    @property
    def clauses(self) -> list[str]:
        out: list[str] = []
        if self.identifier:
            out.append("identifier")
        if self.owner_document:
            out.append("owner_document")
        if self.street_name and self.street_number:
            out.append("address")
        if self.owner_name:
            out.append("owner_name")
        if self.location is not None:
            out.append("location")
        return out

    @property
    def is_empty(self) -> bool:
        return not self.clauses


class ReferenceReader(Protocol):
    """Source de lecture du jeu de référence municipal."""

    def query_candidates(
        self,
        candidate_filter: CandidateFilter,
        municipality: str,
        limit: int,
    ) -> list[ReferenceRecord]:
        """Enregistrements actifs de la municipalité satisfaisant le filtre, au plus limit."""
        ...


def build_candidate_filter(source: SourceRecord, config: MatchingConfig) -> CandidateFilter:
    """
    Construit le filtre de recherche à partir des champs renseignés de la fiche.

    Le nom du propriétaire n'est utilisé que s'il dépasse config.min_name_length
    caractères.

    Raises:
        ValidationError: Si aucune clause ne peut être construite.
    """
    owner_name = source.owner_name
    if owner_name and len(owner_name) <= config.min_name_length:
        owner_name = None
    has_address = bool(source.street_name and source.street_number)

    candidate_filter = CandidateFilter(
        identifier=source.identifier,
        owner_document=source.owner_document,
        street_name=source.street_name if has_address else None,
        street_number=source.street_number if has_address else None,
        owner_name=owner_name,
        location=source.location,
        radius_km=config.search_radius_km,
    )
    if candidate_filter.is_empty:
        raise ValidationError("Aucun champ exploitable pour la recherche (inscription, document, adresse, nom, position)")
    return candidate_filter


def retrieve_candidates(
    reader: ReferenceReader,
    source: SourceRecord,
    municipality: str,
    config: MatchingConfig,
) -> list[ReferenceRecord]:
    """
    Retourne au plus config.candidate_limit candidats actifs de la municipalité.

    Une fiche sans champ exploitable donne une liste vide sans interroger le stockage.
    Les erreurs de stockage (PersistenceError) sont propagées.
    """
    try:
        candidate_filter = build_candidate_filter(source, config)
    except ValidationError as e:
        logger.warning("Recherche de candidats ignorée: %s", e)
        return []

    candidates = reader.query_candidates(candidate_filter, municipality, config.candidate_limit)
    logger.debug(
        "%d candidat(s) pour municipality=%s clauses=%s",
        len(candidates),
        municipality,
        ",".join(candidate_filter.clauses),
    )
    return candidates[: config.candidate_limit]
