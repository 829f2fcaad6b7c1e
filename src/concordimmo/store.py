"""
Stockage relationnel (SQLAlchemy) : cadastre municipal, fiches collectées,
propositions de match et historique des applications.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    and_,
    create_engine,
    event,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from concordimmo.config import ConcordImmoError
from concordimmo.matching.blockers import CandidateFilter
from concordimmo.matching.schema import (
    PROPOSAL_AUTO_APPLIED,
    PROPOSAL_CONFIRMED,
    PROPOSAL_PENDING,
    STATUS_ACTIVE,
    MatchCriterion,
    MatchProposal,
    ReferenceRecord,
    SourceRecord,
)
from concordimmo.matching.similarity import EARTH_RADIUS_KM
from concordimmo.normalize import norm_document

logger = logging.getLogger(__name__)

Base = declarative_base()

KM_PER_DEGREE = EARTH_RADIUS_KM * math.pi / 180

# Séparateurs usuels des CPF/CNPJ formatés
DOCUMENT_SEPARATORS = (".", "-", "/", " ")


class PersistenceError(ConcordImmoError):
    """Erreur d'entrée/sortie du stockage (cadastre ou propositions), non réessayée."""


class NotFoundError(ConcordImmoError):
    """Proposition, enregistrement de référence ou fiche collectée introuvable."""


class AlreadyFinalizedError(ConcordImmoError):
    """La proposition est déjà confirmée ou rejetée ; conflit non bloquant."""


def _new_id() -> str:
    return str(uuid.uuid4())


class ReferenceRow(Base):
    """Donnée municipale importée (BIC/IPTU)."""

    __tablename__ = "municipal_data"

    id = Column(String, primary_key=True, default=_new_id)
    identifier = Column(String, nullable=False, index=True)  # inscription immobilière
    street_number = Column(String)
    complement = Column(String)
    street_name = Column(String)
    neighborhood = Column(String)
    postal_code = Column(String)
    use_code = Column(String)
    lot_area = Column(Float)
    built_area = Column(Float)
    floor_count = Column(Integer)
    owner_name = Column(String)
    owner_document = Column(String, index=True)
    market_value = Column(Float)
    status = Column(String, nullable=False, default=STATUS_ACTIVE)  # active, inactive, pending
    latitude = Column(Float)
    longitude = Column(Float)
    origin = Column(String)  # BIC, IPTU, autre
    municipality = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    def to_record(self) -> ReferenceRecord:
        return ReferenceRecord(
            id=self.id,
            municipality=self.municipality,
            status=self.status,
            identifier=self.identifier,
            street_number=self.street_number,
            complement=self.complement,
            street_name=self.street_name,
            neighborhood=self.neighborhood,
            postal_code=self.postal_code,
            use_code=self.use_code,
            lot_area=self.lot_area,
            built_area=self.built_area,
            floor_count=self.floor_count,
            owner_name=self.owner_name,
            owner_document=self.owner_document,
            latitude=self.latitude,
            longitude=self.longitude,
            market_value=self.market_value,
            origin=self.origin,
        )


class CollectionRow(Base):
    """Fiche collectée : réponses du formulaire + position."""

    __tablename__ = "property_collections"

    id = Column(String, primary_key=True, default=_new_id)
    fields = Column(JSON, nullable=False, default=dict)
    matched_fields = Column(JSON, nullable=False, default=list)
    latitude = Column(Float)
    longitude = Column(Float)
    version = Column(Integer, nullable=False, default=1)
    collected_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class ProposalRow(Base):
    """Proposition de match ; jamais supprimée, le rejet est un statut."""

    __tablename__ = "property_matches"
    __table_args__ = (UniqueConstraint("collection_id", "reference_id", name="uq_property_match_pair"),)

    id = Column(String, primary_key=True, default=_new_id)
    collection_id = Column(String, ForeignKey("property_collections.id"), nullable=False)
    reference_id = Column(String, ForeignKey("municipal_data.id"), nullable=False)
    score = Column(Float, nullable=False)
    criteria = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default=PROPOSAL_PENDING)  # pending, auto_applied, confirmed, rejected
    auto_applied = Column(Boolean, nullable=False, default=False)
    reviewed_by = Column(String)
    reviewed_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    def to_proposal(self) -> MatchProposal:
        return MatchProposal(
            id=self.id,
            source_record_id=self.collection_id,
            reference_id=self.reference_id,
            score=self.score,
            criteria=[MatchCriterion.from_dict(c) for c in self.criteria or []],
            status=self.status,
            auto_applied=bool(self.auto_applied),
            reviewed_by=self.reviewed_by,
        )


class ApplicationRow(Base):
    """Historique : champs copiés du cadastre vers une fiche."""

    __tablename__ = "municipal_data_applications"

    id = Column(String, primary_key=True, default=_new_id)
    collection_id = Column(String, ForeignKey("property_collections.id"), nullable=False)
    reference_id = Column(String, ForeignKey("municipal_data.id"), nullable=False)
    proposal_id = Column(String, ForeignKey("property_matches.id"))
    applied_fields = Column(JSON, nullable=False)
    applied_by = Column(String)
    applied_at = Column(DateTime, nullable=False, default=datetime.now)


def sqlite_url(db_path: Path) -> str:
    return f"sqlite:///{db_path}"


def init_database(db_url: str) -> Engine:
    """
    Initialise la base et crée les tables.

    Args:
        db_url: URL SQLAlchemy (ex. sqlite:///data/concordimmo.db)

    Returns:
        Engine prêt à l'emploi.
    """
    if db_url.startswith("sqlite:///") and db_url != "sqlite:///:memory:":
        Path(db_url[len("sqlite:///") :]).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(db_url)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    return engine


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """pysqlite diffère le BEGIN ; on l'émet nous-mêmes pour que les SAVEPOINT restent dans la transaction."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_session_factory(engine: Engine) -> sessionmaker:
    """Fabrique de sessions liée à l'engine."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _document_digits(column):
    """Colonne document sans séparateurs (REPLACE imbriqués, portable SQLite/PostgreSQL)."""
    expr = column
    for sep in DOCUMENT_SEPARATORS:
        expr = func.replace(expr, sep, "")
    return expr


def _within_radius(lat: float, lon: float, radius_km: float):
    """
    Clause SQL « distance <= radius_km » en arithmétique simple (approximation
    équirectangulaire, exacte au mètre près à cette échelle), portable SQLite/PostgreSQL.
    """
    d_lat = radius_km / KM_PER_DEGREE
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    d_lon = d_lat / cos_lat
    dy = (ReferenceRow.latitude - lat) * KM_PER_DEGREE
    dx = (ReferenceRow.longitude - lon) * (KM_PER_DEGREE * cos_lat)
    return and_(
        ReferenceRow.latitude.between(lat - d_lat, lat + d_lat),
        ReferenceRow.longitude.between(lon - d_lon, lon + d_lon),
        dy * dy + dx * dx <= radius_km * radius_km,
    )


def build_conditions(candidate_filter: CandidateFilter) -> list[Any]:
    """Traduit le filtre de candidats en clauses SQL (à combiner par OR)."""
    f = candidate_filter
    conditions: list[Any] = []
    if f.identifier:
        conditions.append(ReferenceRow.identifier == f.identifier)
    if f.owner_document:
        digits = norm_document(f.owner_document)
        if digits:
            conditions.append(
                or_(
                    ReferenceRow.owner_document == f.owner_document,
                    _document_digits(ReferenceRow.owner_document) == digits,
                )
            )
        else:
            conditions.append(ReferenceRow.owner_document == f.owner_document)
    if f.street_name and f.street_number:
        conditions.append(
            and_(
                ReferenceRow.street_name.ilike(_like_pattern(f.street_name), escape="\\"),
                ReferenceRow.street_number == f.street_number,
            )
        )
    if f.owner_name:
        conditions.append(ReferenceRow.owner_name.ilike(_like_pattern(f.owner_name), escape="\\"))
    if f.location is not None:
        lat, lon = f.location
        conditions.append(_within_radius(lat, lon, f.radius_km))
    return conditions


class SqlReferenceReader:
    """Lecture du cadastre municipal en base."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def query_candidates(
        self,
        candidate_filter: CandidateFilter,
        municipality: str,
        limit: int,
    ) -> list[ReferenceRecord]:
        """
        Raises:
            PersistenceError: En cas d'erreur de la base.
        """
        conditions = build_conditions(candidate_filter)
        if not conditions:
            return []

        stmt = (
            select(ReferenceRow)
            .where(
                ReferenceRow.municipality == municipality,
                ReferenceRow.status == STATUS_ACTIVE,
                or_(*conditions),
            )
            .order_by(ReferenceRow.id)
            .limit(limit)
        )
        try:
            with self.session_factory() as session:
                return [row.to_record() for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            logger.error("Lecture du cadastre impossible: %s", e)
            raise PersistenceError(f"Lecture du cadastre impossible: {e}") from e

    def get(self, reference_id: str) -> ReferenceRecord | None:
        try:
            with self.session_factory() as session:
                row = session.get(ReferenceRow, reference_id)
                return row.to_record() if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Lecture du cadastre impossible: {e}") from e


class SqlCollectionStore:
    """Accès aux fiches collectées, dans la session (transaction) de l'appelant."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(
        self,
        fields: dict[str, Any],
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> str:
        row = CollectionRow(fields=dict(fields), matched_fields=[], latitude=latitude, longitude=longitude)
        self.session.add(row)
        self.session.flush()
        return row.id

    def get_fields(self, collection_id: str) -> dict[str, Any] | None:
        row = self.session.get(CollectionRow, collection_id)
        if row is None:
            return None
        return dict(row.fields or {})

    def get_matched_fields(self, collection_id: str) -> list[str]:
        row = self.session.get(CollectionRow, collection_id)
        return list(row.matched_fields or []) if row is not None else []

    def set_fields(
        self,
        collection_id: str,
        fields: dict[str, Any],
        matched_fields: list[str] | None = None,
    ) -> None:
        """
        Remplace les réponses de la fiche (et l'ensemble des champs appariés si fourni).

        Raises:
            NotFoundError: Si la fiche n'existe pas.
        """
        row = self.session.get(CollectionRow, collection_id)
        if row is None:
            raise NotFoundError(f"Fiche collectée introuvable: {collection_id}")
        row.fields = dict(fields)
        if matched_fields is not None:
            row.matched_fields = sorted(matched_fields)
        row.version = (row.version or 1) + 1
        self.session.flush()

    def get_source_record(self, collection_id: str) -> SourceRecord | None:
        """Fiche source prête pour le matching : réponses du formulaire + position collectée."""
        row = self.session.get(CollectionRow, collection_id)
        if row is None:
            return None
        data = dict(row.fields or {})
        if row.latitude is not None and row.longitude is not None:
            data["latitude"] = row.latitude
            data["longitude"] = row.longitude
        return SourceRecord.from_dict(data)


class SqlProposalStore:
    """Accès aux propositions de match, dans la session de l'appelant."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, proposal_id: str) -> ProposalRow | None:
        return self.session.get(ProposalRow, proposal_id)

    def find_pair(self, collection_id: str, reference_id: str) -> ProposalRow | None:
        stmt = select(ProposalRow).where(
            ProposalRow.collection_id == collection_id,
            ProposalRow.reference_id == reference_id,
        )
        return self.session.scalars(stmt).first()

    def find_applied(self, collection_id: str, exclude_reference_id: str | None = None) -> ProposalRow | None:
        """Proposition déjà appliquée (auto_applied ou confirmed) à la fiche, hors référence exclue."""
        stmt = select(ProposalRow).where(
            ProposalRow.collection_id == collection_id,
            ProposalRow.status.in_([PROPOSAL_AUTO_APPLIED, PROPOSAL_CONFIRMED]),
        )
        if exclude_reference_id is not None:
            stmt = stmt.where(ProposalRow.reference_id != exclude_reference_id)
        return self.session.scalars(stmt).first()

    def list_for_collection(self, collection_id: str) -> list[ProposalRow]:
        stmt = (
            select(ProposalRow)
            .where(ProposalRow.collection_id == collection_id)
            .order_by(ProposalRow.score.desc(), ProposalRow.created_at)
        )
        return list(self.session.scalars(stmt))

    def transition(
        self,
        proposal_id: str,
        from_statuses: frozenset[str],
        values: dict[str, Any],
    ) -> bool:
        """
        Écriture conditionnelle : ne modifie la ligne que si son statut est dans from_statuses.

        Returns:
            True si la ligne a été modifiée, False si un autre appel l'a déjà finalisée.
        """
        stmt = (
            update(ProposalRow)
            .where(ProposalRow.id == proposal_id, ProposalRow.status.in_(sorted(from_statuses)))
            .values(**values)
        )
        result = self.session.execute(stmt, execution_options={"synchronize_session": False})
        changed = result.rowcount == 1
        row = self.session.get(ProposalRow, proposal_id)
        if row is not None:
            self.session.refresh(row)
        return changed
