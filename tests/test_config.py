"""Tests for classifier configuration loading."""

import pytest

from jobtaxonomy.config import DEFAULT_CONFIG, config_from_dict, load_config
from jobtaxonomy.exceptions import ConfigError


class TestConfig:

    def test_defaults(self):
        assert DEFAULT_CONFIG.title_weight == 25
        assert DEFAULT_CONFIG.labels_weight == 15
        assert DEFAULT_CONFIG.description_weight == 3
        assert DEFAULT_CONFIG.min_supporting_jobs == 3
        assert DEFAULT_CONFIG.auto_apply_confidence == 0.80

    def test_overrides(self):
        config = config_from_dict({"title_weight": 30, "auto_apply_confidence": 0.9})

        assert config.title_weight == 30
        assert config.auto_apply_confidence == 0.9
        assert config.labels_weight == DEFAULT_CONFIG.labels_weight

    @pytest.mark.parametrize("data", [
        {"no_such_key": 1},
        {"title_weight": "heavy"},
        {"title_weight": -1},
        {"min_suggestion_confidence": 0.9, "auto_apply_confidence": 0.8},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ConfigError):
            config_from_dict(data)

    def test_load_yaml_with_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("classifier:\n  ambiguity_threshold: 8\n", encoding="utf-8")

        assert load_config(str(path)).ambiguity_threshold == 8

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(str(path)) == DEFAULT_CONFIG

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "nope.yaml"))
