"""Tests for engine configuration persistence."""

import json

from storyqueue.config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    get_config_path,
    load_config,
    make_config,
    save_config,
)


class TestConfig:
    """Load, save and override."""

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path / "nope.json") == DEFAULT_CONFIG

    def test_defaults_not_shared(self, tmp_path):
        config = load_config(tmp_path / "nope.json")
        config["optional_capacity"] = 99
        assert DEFAULT_CONFIG["optional_capacity"] == 5

    def test_roundtrip(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        config = make_config(optional_capacity=3, max_background_per_week=0)
        assert save_config(config, path)
        assert load_config(path) == config

    def test_partial_file_merged_with_defaults(self, tmp_path):
        path = tmp_path / "partial.json"
        path.write_text(json.dumps({"roll_max": 20, "mystery": True}), encoding="utf-8")
        config = load_config(path)
        assert config["roll_max"] == 20
        assert config["optional_capacity"] == DEFAULT_CONFIG["optional_capacity"]
        assert "mystery" not in config

    def test_corrupt_file_falls_back(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_config(path) == DEFAULT_CONFIG

    def test_config_path(self, tmp_path):
        assert get_config_path(tmp_path) == tmp_path / CONFIG_FILENAME
