"""Transfert des champs du cadastre vers une fiche collectée."""

from __future__ import annotations

from typing import Any

from concordimmo.matching.schema import ReferenceRecord

# Champs du cadastre recopiés dans la fiche lors d'une application
APPLIED_FIELDS = (
    "identifier",
    "owner_name",
    "owner_document",
    "lot_area",
    "built_area",
    "use_code",
    "floor_count",
    "market_value",
)


def _is_empty(val: object) -> bool:
    return val is None or str(val).strip() == ""


def build_applied_fields(reference: ReferenceRecord) -> dict[str, Any]:
    """Valeurs à recopier depuis l'enregistrement de référence (champs renseignés uniquement)."""
    out: dict[str, Any] = {}
    for name in APPLIED_FIELDS:
        val = getattr(reference, name)
        if not _is_empty(val):
            out[name] = val
    return out


def merge_fields(
    current: dict[str, Any],
    applied: dict[str, Any],
    *,
    overwrite_mode: str = "always",
    suffix_on_collision: str = "_ref",
) -> tuple[dict[str, Any], list[str]]:
    """
    Fusionne les champs appliqués dans les réponses existantes de la fiche.

    Args:
        current: Réponses actuelles (non modifiées).
        applied: Champs issus du cadastre.
        overwrite_mode: always (écrase), if_empty (écrit si vide),
            never (écrit sous nom+suffixe si le champ est déjà renseigné).
        suffix_on_collision: Suffixe utilisé en mode never.

    Returns:
        (nouvelles réponses, noms des champs effectivement écrits)
    """
    out = dict(current)
    written: list[str] = []

    for name, val in applied.items():
        target = name
        existing = out.get(name)
        if overwrite_mode == "if_empty" and not _is_empty(existing):
            continue
        if overwrite_mode == "never" and not _is_empty(existing):
            target = name + suffix_on_collision
        out[target] = val
        written.append(target)

    return out, written
