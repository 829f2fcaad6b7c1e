"""Lecteur du cadastre municipal en mémoire, sur un DataFrame pandas."""

from __future__ import annotations

import pandas as pd

from concordimmo.matching.blockers import CandidateFilter
from concordimmo.matching.schema import STATUS_ACTIVE, ReferenceRecord
from concordimmo.matching.similarity import distance_km
from concordimmo.normalize import clean_str, norm_document, norm_text

REQUIRED_COLUMNS = ("id", "municipality")


def _col(df: pd.DataFrame, name: str) -> pd.Series:
    """Colonne du DataFrame, ou série vide (None) si absente."""
    if name in df.columns:
        return df[name]
    return pd.Series([None] * len(df), index=df.index, dtype="object")


class DataFrameReferenceReader:
    """
    Lecteur de référence sur un DataFrame dont les colonnes portent les noms
    des champs de ReferenceRecord. L'ordre des lignes est l'ordre de récupération.
    """

    def __init__(self, df: pd.DataFrame) -> None:
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Colonnes requises absentes du cadastre: {', '.join(missing)}")
        self.df = df.reset_index(drop=True)

    def query_candidates(
        self,
        candidate_filter: CandidateFilter,
        municipality: str,
        limit: int,
    ) -> list[ReferenceRecord]:
        df = self.df
        f = candidate_filter

        status = _col(df, "status").map(clean_str).fillna(STATUS_ACTIVE)
        in_scope = (df["municipality"].map(clean_str) == municipality) & (status == STATUS_ACTIVE)

        mask = pd.Series(False, index=df.index)
        if f.identifier:
            mask |= _col(df, "identifier").map(clean_str) == f.identifier
        if f.owner_document:
            docs = _col(df, "owner_document")
            mask |= docs.map(clean_str) == f.owner_document
            digits = norm_document(f.owner_document)
            if digits:
                mask |= docs.map(norm_document) == digits
        if f.street_name and f.street_number:
            needle = norm_text(f.street_name)
            street_ok = _col(df, "street_name").map(lambda v: needle in norm_text(v))
            number_ok = _col(df, "street_number").map(clean_str) == f.street_number
            mask |= street_ok & number_ok
        if f.owner_name:
            needle = norm_text(f.owner_name)
            mask |= _col(df, "owner_name").map(lambda v: needle in norm_text(v))
        if f.location is not None:
            lat = pd.to_numeric(_col(df, "latitude"), errors="coerce")
            lon = pd.to_numeric(_col(df, "longitude"), errors="coerce")
            dist = pd.Series(
                [
                    distance_km(f.location, (a, b)) if pd.notna(a) and pd.notna(b) else float("inf")
                    for a, b in zip(lat, lon)
                ],
                index=df.index,
            )
            mask |= dist <= f.radius_km

        rows = df[in_scope & mask.astype(bool)].head(limit)
        rows = rows.astype(object).where(rows.notna(), None)
        return [ReferenceRecord.from_dict(rec) for rec in rows.to_dict("records")]
