"""Enregistrement des propositions de match et cycle de vie (application, rejet)."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from concordimmo.config import MatchingConfig
from concordimmo.matching.confidence import should_auto_apply
from concordimmo.matching.schema import (
    OPEN_STATUSES,
    PROPOSAL_AUTO_APPLIED,
    PROPOSAL_CONFIRMED,
    PROPOSAL_PENDING,
    PROPOSAL_REJECTED,
    MatchCriterion,
    MatchProposal,
    MatchResult,
)
from concordimmo.store import (
    AlreadyFinalizedError,
    ApplicationRow,
    NotFoundError,
    PersistenceError,
    ProposalRow,
    ReferenceRow,
    SqlCollectionStore,
    SqlProposalStore,
)
from concordimmo.transfer import build_applied_fields, merge_fields

logger = logging.getLogger(__name__)


class MatchRecorder:
    """
    Persiste les propositions et applique/rejette les matches.

    Chaque opération s'exécute dans une seule transaction : la fiche collectée
    est soit entièrement mise à jour, soit inchangée. Les transitions de statut
    sont des écritures conditionnelles (uniquement depuis pending/auto_applied),
    ce qui rend sûrs les appels concurrents sur une même paire.
    """

    def __init__(self, session_factory: sessionmaker, config: MatchingConfig | None = None) -> None:
        self.session_factory = session_factory
        self.config = config or MatchingConfig()

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Session]:
        session = self.session_factory()
        try:
            with session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error("%s: erreur de stockage: %s", action, e)
            raise PersistenceError(f"{action}: erreur de stockage: {e}") from e
        finally:
            session.close()

    def propose(
        self,
        source_record_id: str,
        reference_id: str,
        score: float,
        criteria: list[MatchCriterion],
        *,
        auto_apply: bool = False,
    ) -> MatchProposal:
        """
        Crée ou met à jour (upsert idempotent) la proposition pour la paire (fiche, référence).

        Une proposition encore ouverte est mise à jour sur place ; une proposition
        finalisée est retournée telle quelle. Si auto_apply est demandé, que le
        score atteint le seuil et qu'aucune autre référence n'est déjà appliquée à
        la fiche, la proposition passe en auto_applied et les champs du cadastre
        sont recopiés dans la fiche. Une proposition auto_applied n'est mise à jour
        que par un nouveau score lui-même éligible ; sinon elle reste inchangée.

        Raises:
            PersistenceError: En cas d'erreur de stockage.
            NotFoundError: Application automatique sur une fiche ou référence
                absente ; la transaction est annulée, aucune proposition n'est écrite.
        """
        auto = should_auto_apply(score, auto_apply, self.config.thresholds)
        payload = [c.to_dict() for c in criteria]

        with self._transaction("propose") as session:
            proposals = SqlProposalStore(session)
            row = proposals.find_pair(source_record_id, reference_id)

            if auto and proposals.find_applied(source_record_id, exclude_reference_id=reference_id) is not None:
                logger.warning(
                    "Fiche %s déjà rapprochée d'une autre référence, pas d'application automatique de %s",
                    source_record_id,
                    reference_id,
                )
                auto = False

            if row is None:
                row = self._insert(session, source_record_id, reference_id, score, payload, auto)
                if row is None:
                    # insertion concurrente de la même paire : on repasse par la mise à jour
                    row = proposals.find_pair(source_record_id, reference_id)
                    if row is None:
                        raise PersistenceError(
                            f"propose: proposition introuvable après conflit ({source_record_id}, {reference_id})"
                        )
                    auto = self._update_open(proposals, row, score, payload, auto)
            else:
                auto = self._update_open(proposals, row, score, payload, auto)

            if row.status not in OPEN_STATUSES:
                logger.info("Proposition %s déjà finalisée (%s), inchangée", row.id, row.status)
                return row.to_proposal()

            if auto:
                self._apply_fields(session, row, applied_by=None)

            logger.info(
                "Proposition %s: collection=%s reference=%s score=%.3f status=%s",
                row.id,
                source_record_id,
                reference_id,
                score,
                row.status,
            )
            return row.to_proposal()

    def _insert(
        self,
        session: Session,
        source_record_id: str,
        reference_id: str,
        score: float,
        payload: list[dict[str, Any]],
        auto: bool,
    ) -> ProposalRow | None:
        """Insère la proposition ; None si une autre transaction a inséré la même paire."""
        row = ProposalRow(
            collection_id=source_record_id,
            reference_id=reference_id,
            score=score,
            criteria=payload,
            status=PROPOSAL_AUTO_APPLIED if auto else PROPOSAL_PENDING,
            auto_applied=auto,
        )
        try:
            with session.begin_nested():
                session.add(row)
                session.flush()
        except IntegrityError:
            logger.warning("Proposition concurrente pour (%s, %s)", source_record_id, reference_id)
            return None
        return row

    def _update_open(
        self,
        proposals: SqlProposalStore,
        row: ProposalRow,
        score: float,
        payload: list[dict[str, Any]],
        auto: bool,
    ) -> bool:
        """
        Met à jour sur place une proposition encore ouverte.

        Returns:
            True si les champs doivent encore être recopiés (passage en auto_applied).
        """
        if row.status not in OPEN_STATUSES:
            return False
        if row.status == PROPOSAL_AUTO_APPLIED and not auto:
            logger.info("Proposition %s auto_applied conservée (score %.3f non éligible)", row.id, score)
            return False
        newly_auto = auto and row.status != PROPOSAL_AUTO_APPLIED
        values: dict[str, Any] = {"score": score, "criteria": payload}
        if newly_auto:
            values["status"] = PROPOSAL_AUTO_APPLIED
            values["auto_applied"] = True
        if not proposals.transition(row.id, OPEN_STATUSES, values):
            return False
        return newly_auto

    def record_matches(
        self,
        source_record_id: str,
        results: list[MatchResult],
        *,
        auto_apply: bool = False,
    ) -> list[MatchProposal]:
        """
        Propose chaque résultat d'une recherche, dans l'ordre du classement.

        Au plus une proposition est appliquée automatiquement : celle du seul
        résultat éligible. Si plusieurs résultats atteignent le seuil, aucun n'est
        appliqué et tous restent en attente de revue.
        """
        eligible = [r for r in results if should_auto_apply(r.score, auto_apply, self.config.thresholds)]
        if len(eligible) > 1:
            logger.warning(
                "Fiche %s: %d références éligibles à l'application automatique, aucune appliquée",
                source_record_id,
                len(eligible),
            )
        chosen = eligible[0].reference_id if len(eligible) == 1 else None
        return [
            self.propose(
                source_record_id,
                r.reference_id,
                r.score,
                r.criteria,
                auto_apply=r.reference_id == chosen,
            )
            for r in results
        ]

    def apply(self, proposal_id: str, *, reviewed_by: str | None = None) -> dict[str, Any]:
        """
        Recopie les champs du cadastre dans la fiche et confirme la proposition.

        Returns:
            Champs appliqués {nom: valeur}.

        Raises:
            NotFoundError: Proposition, référence ou fiche introuvable.
            AlreadyFinalizedError: Proposition déjà confirmée ou rejetée.
            PersistenceError: En cas d'erreur de stockage.
        """
        with self._transaction("apply") as session:
            proposals = SqlProposalStore(session)
            row = proposals.get(proposal_id)
            if row is None:
                raise NotFoundError(f"Proposition introuvable: {proposal_id}")
            if row.status not in OPEN_STATUSES:
                raise AlreadyFinalizedError(f"Proposition {proposal_id} déjà finalisée ({row.status})")

            if not proposals.transition(
                proposal_id,
                OPEN_STATUSES,
                {"status": PROPOSAL_CONFIRMED, "reviewed_by": reviewed_by, "reviewed_at": datetime.now()},
            ):
                raise AlreadyFinalizedError(f"Proposition {proposal_id} finalisée par un autre appel")

            applied = self._apply_fields(session, row, applied_by=reviewed_by)
            logger.info("Proposition %s confirmée, %d champ(s) appliqué(s)", proposal_id, len(applied))
            return applied

    def reject(self, proposal_id: str, *, reviewed_by: str | None = None) -> MatchProposal:
        """
        Rejette la proposition (statut terminal, conservé pour l'audit).

        Raises:
            NotFoundError: Proposition introuvable.
            AlreadyFinalizedError: Proposition déjà confirmée ou rejetée.
            PersistenceError: En cas d'erreur de stockage.
        """
        with self._transaction("reject") as session:
            proposals = SqlProposalStore(session)
            row = proposals.get(proposal_id)
            if row is None:
                raise NotFoundError(f"Proposition introuvable: {proposal_id}")
            if not proposals.transition(
                proposal_id,
                OPEN_STATUSES,
                {"status": PROPOSAL_REJECTED, "reviewed_by": reviewed_by, "reviewed_at": datetime.now()},
            ):
                raise AlreadyFinalizedError(f"Proposition {proposal_id} déjà finalisée ({row.status})")
            logger.info("Proposition %s rejetée", proposal_id)
            return row.to_proposal()

    def get(self, proposal_id: str) -> MatchProposal | None:
        with self._transaction("get") as session:
            row = SqlProposalStore(session).get(proposal_id)
            return row.to_proposal() if row is not None else None

    def list_for_collection(self, source_record_id: str) -> list[MatchProposal]:
        with self._transaction("list") as session:
            return [r.to_proposal() for r in SqlProposalStore(session).list_for_collection(source_record_id)]

    def _apply_fields(self, session: Session, row: ProposalRow, *, applied_by: str | None) -> dict[str, Any]:
        reference = session.get(ReferenceRow, row.reference_id)
        if reference is None:
            raise NotFoundError(f"Référence introuvable: {row.reference_id}")
        collections = SqlCollectionStore(session)
        current = collections.get_fields(row.collection_id)
        if current is None:
            raise NotFoundError(f"Fiche collectée introuvable: {row.collection_id}")

        applied = build_applied_fields(reference.to_record())
        merged, written = merge_fields(current, applied, overwrite_mode=self.config.overwrite_mode)
        matched = set(collections.get_matched_fields(row.collection_id)) | set(written)
        collections.set_fields(row.collection_id, merged, matched_fields=sorted(matched))

        applied_values = {name: merged[name] for name in written}
        session.add(
            ApplicationRow(
                collection_id=row.collection_id,
                reference_id=row.reference_id,
                proposal_id=row.id,
                applied_fields=applied_values,
                applied_by=applied_by,
            )
        )
        return applied_values
