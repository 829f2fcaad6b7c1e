"""Tests de la synthèse des résultats."""

from concordimmo import __version__
from concordimmo.config import MatchingConfig
from concordimmo.matching.schema import MatchCriterion, MatchResult, ReferenceRecord
from concordimmo.report import build_match_summary, build_report_df


def _result(ref_id: str, score: float, identifier: str = "12345678") -> MatchResult:
    return MatchResult(
        reference_id=ref_id,
        score=score,
        criteria=[
            MatchCriterion("exact", "identifier", 1.0, 1.0, "Identical property registration"),
            MatchCriterion("proximity", "location", 0.9, 0.9, "Distance: 10m"),
        ],
        reference=ReferenceRecord(id=ref_id, municipality="SP", identifier=identifier),
    )


def test_match_summary_rows():
    rows = build_match_summary([_result("r1", 0.97), _result("r2", 0.7)], "c1")
    assert [r["id"] for r in rows] == ["c1-r1", "c1-r2"]
    assert rows[0]["confidence"] == "Very High"
    assert rows[0]["auto_apply_eligible"] is True
    assert rows[1]["confidence"] == "Medium"
    assert rows[1]["auto_apply_eligible"] is False
    assert rows[0]["criteria"][0]["field"] == "identifier"
    assert rows[0]["reference"]["identifier"] == "12345678"


def test_match_summary_uses_config_thresholds():
    cfg = MatchingConfig.from_dict({"thresholds": {"auto_apply": 0.99, "high": 0.9, "medium": 0.7, "low": 0.5}})
    (row,) = build_match_summary([_result("r1", 0.97)], "c1", cfg)
    assert row["confidence"] == "High"
    assert row["auto_apply_eligible"] is False


def test_report_df_columns():
    df = build_report_df([_result("r1", 0.912345), _result("r2", 0.5, identifier="999")])
    assert list(df.columns) == [
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
    assert df["rank"].tolist() == [1, 2]
    assert df.loc[0, "score"] == 0.9123
    assert df.loc[0, "confidence"] == "High"
    assert df.loc[1, "confidence"] == "Low"
    assert df.loc[0, "reasons"] == "Identical property registration; Distance: 10m"
    assert df.loc[0, "config_version"] == "v1"
    assert df.loc[0, "engine_version"] == __version__


def test_report_df_empty():
    df = build_report_df([])
    assert df.empty
    assert "score" in df.columns
