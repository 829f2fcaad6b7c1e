"""Configuration du moteur de matching et chargement du fichier config JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

VALID_STRING_METHODS = frozenset({"char_overlap", "token_set"})
VALID_OVERWRITE_MODES = frozenset({"never", "if_empty", "always"})


class ConcordImmoError(Exception):
    """Exception de base pour ConcordImmo."""


class ConfigError(ConcordImmoError, ValueError):
    """Erreur de validation de la configuration."""


class ConfigFileError(ConcordImmoError):
    """Erreur de chargement du fichier de configuration (fichier absent, JSON invalide)."""


def _floats_from_dict(cls: type, d: dict[str, Any], section: str) -> dict[str, float]:
    """Convertit une section {champ: nombre} en kwargs, en refusant les champs inconnus."""
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(d) - known)
    if unknown:
        raise ConfigError(f"{section}: champs inconnus {unknown}. Valides: {sorted(known)}")
    out: dict[str, float] = {}
    for name, value in d.items():
        try:
            out[name] = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{section}.{name} doit être un nombre (got {value!r})") from e
    return out


@dataclass(frozen=True)
class FieldWeights:
    """Poids a priori de chaque champ comparé (fiabilité de l'identification)."""

    identifier: float = 1.0
    owner_document: float = 0.9
    location: float = 0.8
    address: float = 0.7
    owner_name: float = 0.6
    lot_area: float = 0.5
    built_area: float = 0.5
    use_code: float = 0.4
    floor_count: float = 0.3

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FieldWeights:
        values = _floats_from_dict(cls, d, "weights")
        for name, w in values.items():
            if w <= 0:
                raise ConfigError(f"weights.{name} doit être > 0 (got {w})")
        return cls(**values)

    def get(self, field_name: str) -> float:
        return float(getattr(self, field_name))


@dataclass(frozen=True)
class VisibilityThresholds:
    """Score minimal (exclusif) pour afficher un critère ; n'influence pas le calcul du score."""

    identifier: float = 0.0
    owner_document: float = 0.0
    location: float = 0.3
    address: float = 0.5
    owner_name: float = 0.6
    lot_area: float = 0.7
    built_area: float = 0.7
    use_code: float = 0.0
    floor_count: float = 0.7

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> VisibilityThresholds:
        values = _floats_from_dict(cls, d, "visibility")
        for name, t in values.items():
            if not 0 <= t <= 1:
                raise ConfigError(f"visibility.{name} doit être entre 0 et 1 (got {t})")
        return cls(**values)

    def get(self, field_name: str) -> float:
        return float(getattr(self, field_name))


@dataclass(frozen=True)
class ConfidenceThresholds:
    """Bornes inférieures (inclusives) des niveaux de confiance."""

    auto_apply: float = 0.95
    high: float = 0.85
    medium: float = 0.65
    low: float = 0.40

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ConfidenceThresholds:
        th = cls(**_floats_from_dict(cls, d, "thresholds"))
        if not 0 <= th.low <= th.medium <= th.high <= th.auto_apply <= 1:
            raise ConfigError(
                "thresholds doivent vérifier 0 <= low <= medium <= high <= auto_apply <= 1 "
                f"(got {th.low}, {th.medium}, {th.high}, {th.auto_apply})"
            )
        return th


@dataclass
class MatchingConfig:
    """Configuration versionnée du moteur de matching."""

    version: str = "v1"
    weights: FieldWeights = field(default_factory=FieldWeights)
    visibility: VisibilityThresholds = field(default_factory=VisibilityThresholds)
    thresholds: ConfidenceThresholds = field(default_factory=ConfidenceThresholds)

    search_radius_km: float = 0.1
    candidate_limit: int = 10
    min_name_length: int = 3  # le nom doit être strictement plus long
    string_method: str = "char_overlap"  # char_overlap, token_set
    score_floor_count: bool = False
    overwrite_mode: str = "always"  # never, if_empty, always

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MatchingConfig:
        search_radius_km = float(d.get("search_radius_km", 0.1))
        candidate_limit = int(d.get("candidate_limit", 10))
        min_name_length = int(d.get("min_name_length", 3))
        string_method = d.get("string_method", "char_overlap")
        overwrite_mode = d.get("overwrite_mode", "always")

        if search_radius_km <= 0:
            raise ConfigError(f"search_radius_km doit être > 0 (got {search_radius_km})")
        if candidate_limit < 1:
            raise ConfigError(f"candidate_limit doit être >= 1 (got {candidate_limit})")
        if min_name_length < 0:
            raise ConfigError(f"min_name_length doit être >= 0 (got {min_name_length})")
        if string_method not in VALID_STRING_METHODS:
            raise ConfigError(
                f"string_method invalide: {string_method!r}. Valides: {sorted(VALID_STRING_METHODS)}"
            )
        if overwrite_mode not in VALID_OVERWRITE_MODES:
            raise ConfigError(f"overwrite_mode invalide: {overwrite_mode!r}. Valides: {sorted(VALID_OVERWRITE_MODES)}")

        return cls(
            version=str(d.get("version", "v1")),
            weights=FieldWeights.from_dict(d.get("weights", {})),
            visibility=VisibilityThresholds.from_dict(d.get("visibility", {})),
            thresholds=ConfidenceThresholds.from_dict(d.get("thresholds", {})),
            search_radius_km=search_radius_km,
            candidate_limit=candidate_limit,
            min_name_length=min_name_length,
            string_method=string_method,
            score_floor_count=bool(d.get("score_floor_count", False)),
            overwrite_mode=overwrite_mode,
        )

    @classmethod
    def load(cls, path: str | Path) -> MatchingConfig:
        """
        Charge la configuration depuis un fichier JSON.

        Raises:
            ConfigFileError: Si le fichier est absent ou le JSON invalide.
            ConfigError: Si la configuration est invalide.
        """
        path = Path(path).resolve()
        if not path.exists():
            raise ConfigFileError(f"Fichier de configuration introuvable: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                d = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigFileError(f"JSON invalide dans {path}: {e}") from e
        except OSError as e:
            raise ConfigFileError(f"Impossible de lire {path}: {e}") from e

        if not isinstance(d, dict):
            raise ConfigFileError(f"Fichier de configuration invalide: {path} doit contenir un objet JSON")

        return cls.from_dict(d)
