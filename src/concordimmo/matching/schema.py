"""Schémas et types pour le matching."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from concordimmo.normalize import clean_float, clean_int, clean_str

STATUS_ACTIVE = "active"

PROPOSAL_PENDING = "pending"
PROPOSAL_AUTO_APPLIED = "auto_applied"
PROPOSAL_CONFIRMED = "confirmed"
PROPOSAL_REJECTED = "rejected"

OPEN_STATUSES = frozenset({PROPOSAL_PENDING, PROPOSAL_AUTO_APPLIED})
FINAL_STATUSES = frozenset({PROPOSAL_CONFIRMED, PROPOSAL_REJECTED})

KIND_EXACT = "exact"
KIND_PROXIMITY = "proximity"
KIND_SIMILARITY = "similarity"

_TEXT_FIELDS = (
    "identifier",
    "street_number",
    "complement",
    "street_name",
    "neighborhood",
    "use_code",
    "owner_name",
    "owner_document",
)
_FLOAT_FIELDS = ("lot_area", "built_area", "latitude", "longitude")


def _clean_property_fields(d: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in _TEXT_FIELDS:
        out[name] = clean_str(d.get(name))
    for name in _FLOAT_FIELDS:
        out[name] = clean_float(d.get(name))
    out["floor_count"] = clean_int(d.get("floor_count"))
    return out


@dataclass(frozen=True)
class SourceRecord:
    """Fiche collectée sur le terrain, partielle : tout champ peut être absent."""

    identifier: str | None = None  # inscription immobilière
    street_number: str | None = None
    complement: str | None = None
    street_name: str | None = None
    neighborhood: str | None = None
    use_code: str | None = None
    lot_area: float | None = None
    built_area: float | None = None
    floor_count: int | None = None
    owner_name: str | None = None
    owner_document: str | None = None  # CPF/CNPJ
    latitude: float | None = None
    longitude: float | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SourceRecord:
        """
        Construit une fiche depuis les réponses d'un formulaire.

        Les valeurs vides ou mal formées deviennent None ; les clés inconnues sont ignorées.
        """
        return cls(**_clean_property_fields(d))

    @property
    def location(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReferenceRecord:
    """Enregistrement du cadastre municipal (BIC/IPTU), lu mais jamais modifié."""

    id: str
    municipality: str
    status: str = STATUS_ACTIVE
    identifier: str | None = None
    street_number: str | None = None
    complement: str | None = None
    street_name: str | None = None
    neighborhood: str | None = None
    postal_code: str | None = None
    use_code: str | None = None
    lot_area: float | None = None
    built_area: float | None = None
    floor_count: int | None = None
    owner_name: str | None = None
    owner_document: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    market_value: float | None = None
    origin: str | None = None  # BIC, IPTU, autre

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ReferenceRecord:
        values = _clean_property_fields(d)
        return cls(
            id=str(d["id"]),
            municipality=str(d["municipality"]),
            status=clean_str(d.get("status")) or STATUS_ACTIVE,
            postal_code=clean_str(d.get("postal_code")),
            market_value=clean_float(d.get("market_value")),
            origin=clean_str(d.get("origin")),
            **values,
        )

    @property
    def location(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MatchCriterion:
    """Raison affichable d'un match, émise au-dessus du seuil de visibilité du champ."""

    kind: str  # exact, proximity, similarity
    field: str
    score: float
    weight: float
    description: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MatchCriterion:
        return cls(
            kind=d["kind"],
            field=d["field"],
            score=float(d["score"]),
            weight=float(d["weight"]),
            description=d.get("description", ""),
        )


@dataclass
class MatchResult:
    """Résultat de matching pour un enregistrement de référence candidat."""

    reference_id: str
    score: float
    criteria: list[MatchCriterion]
    reference: ReferenceRecord
    details: dict[str, float] = field(default_factory=dict)  # score brut par champ comparé

    def __repr__(self) -> str:
        return f"MatchResult(reference={self.reference_id}, score={self.score:.3f})"


@dataclass
class MatchProposal:
    """Proposition de match persistée, avec son cycle de vie."""

    id: str
    source_record_id: str
    reference_id: str
    score: float
    criteria: list[MatchCriterion]
    status: str = PROPOSAL_PENDING  # pending, auto_applied, confirmed, rejected
    auto_applied: bool = False
    reviewed_by: str | None = None

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_STATUSES
