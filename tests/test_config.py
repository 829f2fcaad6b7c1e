"""Tests du module config."""

import json
from pathlib import Path

import pytest

from concordimmo.config import ConfigError, ConfigFileError, FieldWeights, MatchingConfig


def test_defaults() -> None:
    cfg = MatchingConfig()
    assert cfg.version == "v1"
    assert cfg.weights.identifier == 1.0
    assert cfg.weights.floor_count == 0.3
    assert cfg.visibility.address == 0.5
    assert cfg.thresholds.auto_apply == 0.95
    assert cfg.candidate_limit == 10
    assert cfg.search_radius_km == 0.1


def test_from_dict_partial_override() -> None:
    cfg = MatchingConfig.from_dict(
        {
            "version": "v2-ab",
            "weights": {"owner_name": 0.8},
            "string_method": "token_set",
        }
    )
    assert cfg.version == "v2-ab"
    assert cfg.weights.owner_name == 0.8
    assert cfg.weights.identifier == 1.0
    assert cfg.string_method == "token_set"


def test_config_validation_weight_zero() -> None:
    with pytest.raises(ConfigError, match="doit être > 0"):
        FieldWeights.from_dict({"address": 0})


def test_config_validation_unknown_field() -> None:
    with pytest.raises(ConfigError, match="champs inconnus"):
        MatchingConfig.from_dict({"weights": {"zip_code": 0.5}})


def test_config_validation_thresholds_order() -> None:
    with pytest.raises(ConfigError, match="thresholds"):
        MatchingConfig.from_dict({"thresholds": {"high": 0.99}})


def test_config_validation_invalid_method() -> None:
    with pytest.raises(ConfigError, match="string_method invalide"):
        MatchingConfig.from_dict({"string_method": "levenshtein"})


def test_config_validation_invalid_overwrite_mode() -> None:
    with pytest.raises(ConfigError, match="overwrite_mode invalide"):
        MatchingConfig.from_dict({"overwrite_mode": "sometimes"})


def test_config_validation_limit() -> None:
    with pytest.raises(ConfigError, match="candidate_limit"):
        MatchingConfig.from_dict({"candidate_limit": 0})


def test_config_load(tmp_path: Path) -> None:
    path = tmp_path / "matching.json"
    path.write_text(json.dumps({"version": "v3", "visibility": {"location": 0.5}}), encoding="utf-8")
    cfg = MatchingConfig.load(path)
    assert cfg.version == "v3"
    assert cfg.visibility.location == 0.5


def test_config_load_file_not_found(tmp_path: Path) -> None:
    with pytest.raises(ConfigFileError, match="introuvable"):
        MatchingConfig.load(tmp_path / "inexistant.json")


def test_config_load_invalid_json(tmp_path: Path) -> None:
    bad_json = tmp_path / "config.json"
    bad_json.write_text("{ invalid json }", encoding="utf-8")
    with pytest.raises(ConfigFileError, match="JSON invalide"):
        MatchingConfig.load(bad_json)


def test_config_load_not_dict(tmp_path: Path) -> None:
    bad_config = tmp_path / "config.json"
    bad_config.write_text("[1, 2, 3]", encoding="utf-8")
    with pytest.raises(ConfigFileError, match="objet JSON"):
        MatchingConfig.load(bad_config)
