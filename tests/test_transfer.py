"""Tests du transfert des champs du cadastre vers la fiche."""

from concordimmo.matching.schema import ReferenceRecord
from concordimmo.transfer import APPLIED_FIELDS, build_applied_fields, merge_fields


def test_build_applied_fields_skips_empty():
    ref = ReferenceRecord(
        id="r1",
        municipality="SP",
        identifier="12345678",
        owner_name="  ",
        lot_area=200.0,
        street_name="Rua Augusta",
    )
    assert build_applied_fields(ref) == {"identifier": "12345678", "lot_area": 200.0}


def test_applied_fields_exclude_address():
    assert "street_name" not in APPLIED_FIELDS
    assert "market_value" in APPLIED_FIELDS


def test_merge_always_overwrites():
    current = {"owner_name": "Maria", "notes": "x"}
    merged, written = merge_fields(current, {"owner_name": "Maria Silva", "lot_area": 200.0})
    assert merged == {"owner_name": "Maria Silva", "notes": "x", "lot_area": 200.0}
    assert written == ["owner_name", "lot_area"]
    # l'entrée n'est pas modifiée
    assert current == {"owner_name": "Maria", "notes": "x"}


def test_merge_if_empty():
    current = {"owner_name": "Maria", "use_code": ""}
    merged, written = merge_fields(
        current, {"owner_name": "Maria Silva", "use_code": "residencial"}, overwrite_mode="if_empty"
    )
    assert merged["owner_name"] == "Maria"
    assert merged["use_code"] == "residencial"
    assert written == ["use_code"]


def test_merge_never_writes_suffixed():
    merged, written = merge_fields(
        {"owner_name": "Maria"},
        {"owner_name": "Maria Silva", "lot_area": 200.0},
        overwrite_mode="never",
    )
    assert merged["owner_name"] == "Maria"
    assert merged["owner_name_ref"] == "Maria Silva"
    assert merged["lot_area"] == 200.0
    assert written == ["owner_name_ref", "lot_area"]


def test_merge_custom_suffix():
    merged, written = merge_fields(
        {"identifier": "1"}, {"identifier": "2"}, overwrite_mode="never", suffix_on_collision="_cad"
    )
    assert merged == {"identifier": "1", "identifier_cad": "2"}
    assert written == ["identifier_cad"]
