"""Tests de la sélection des candidats."""

from __future__ import annotations

import pytest

from concordimmo.config import MatchingConfig
from concordimmo.matching.blockers import (
    CandidateFilter,
    ValidationError,
    build_candidate_filter,
    retrieve_candidates,
)
from concordimmo.matching.schema import ReferenceRecord, SourceRecord


class SpyReader:
    """Lecteur factice qui enregistre ses appels."""

    def __init__(self, records: list[ReferenceRecord] | None = None) -> None:
        self.records = records or []
        self.calls: list[tuple[CandidateFilter, str, int]] = []

    def query_candidates(self, candidate_filter: CandidateFilter, municipality: str, limit: int) -> list[ReferenceRecord]:
        self.calls.append((candidate_filter, municipality, limit))
        return list(self.records)


def test_filter_all_clauses(config: MatchingConfig) -> None:
    source = SourceRecord(
        identifier="12345678",
        owner_document="123.456.789-09",
        street_name="Rua Augusta",
        street_number="100",
        owner_name="Maria Silva",
        latitude=-23.55,
        longitude=-46.63,
    )
    f = build_candidate_filter(source, config)
    assert f.clauses == ["identifier", "owner_document", "address", "owner_name", "location"]
    assert f.radius_km == 0.1
    assert f.location == (-23.55, -46.63)


def test_filter_address_needs_number(config: MatchingConfig) -> None:
    f = build_candidate_filter(SourceRecord(identifier="1", street_name="Rua Augusta"), config)
    assert "address" not in f.clauses
    assert f.street_name is None


def test_filter_short_name_ignored(config: MatchingConfig) -> None:
    f = build_candidate_filter(SourceRecord(identifier="1", owner_name="Ana"), config)
    assert f.owner_name is None
    f = build_candidate_filter(SourceRecord(identifier="1", owner_name="Anna"), config)
    assert f.owner_name == "Anna"


def test_filter_empty_raises(config: MatchingConfig) -> None:
    with pytest.raises(ValidationError, match="Aucun champ exploitable"):
        build_candidate_filter(SourceRecord(lot_area=120.0, use_code="residencial"), config)


def test_retrieve_short_name_only_does_not_query(config: MatchingConfig) -> None:
    """Un nom de 2 caractères ne produit aucun filtre : liste vide, stockage non interrogé."""
    reader = SpyReader([ReferenceRecord(id="r1", municipality="SP")])
    assert retrieve_candidates(reader, SourceRecord(owner_name="Jo"), "SP", config) == []
    assert reader.calls == []


def test_retrieve_passes_scope_and_limit(config: MatchingConfig) -> None:
    reader = SpyReader()
    retrieve_candidates(reader, SourceRecord(identifier="12345678"), "Campinas", config)
    assert len(reader.calls) == 1
    _, municipality, limit = reader.calls[0]
    assert municipality == "Campinas"
    assert limit == 10


def test_retrieve_caps_results() -> None:
    cfg = MatchingConfig(candidate_limit=3)
    reader = SpyReader([ReferenceRecord(id=f"r{i}", municipality="SP") for i in range(5)])
    out = retrieve_candidates(reader, SourceRecord(identifier="1"), "SP", cfg)
    assert [r.id for r in out] == ["r0", "r1", "r2"]
