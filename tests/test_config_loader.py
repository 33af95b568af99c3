"""
Tests for configuration loading.
"""

import os

import pytest

from whisperburn.config_loader import DEFAULT_CONFIG, ConfigLoader, expand_path
from whisperburn.exceptions import ConfigurationError


@pytest.fixture
def loader():
    return ConfigLoader()


class TestLoadConfig:

    def test_missing_file(self, loader, tmp_path):
        with pytest.raises(FileNotFoundError):
            loader.load_config(str(tmp_path / "config.yaml"))

    def test_directory_is_rejected(self, loader, tmp_path):
        with pytest.raises(ConfigurationError):
            loader.load_config(str(tmp_path))

    def test_overrides_merge_with_defaults(self, loader, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("default_model: small\nstyle:\n  font_size: 40\n", encoding="utf-8")
        config = loader.load_config(str(path))
        assert config["default_model"] == "small"
        assert config["style"]["font_size"] == 40
        assert config["style"]["alignment"] == "bottom-center"
        assert config["video_encoder"] == DEFAULT_CONFIG["video_encoder"]

    def test_defaults_are_not_mutated(self, loader, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("style:\n  margin_v: 5\n", encoding="utf-8")
        loader.load_config(str(path))
        assert DEFAULT_CONFIG["style"]["margin_v"] == 20

    def test_empty_file_gives_defaults(self, loader, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert loader.load_config(str(path)) == DEFAULT_CONFIG

    def test_invalid_yaml(self, loader, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("style: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            loader.load_config(str(path))

    def test_root_must_be_mapping(self, loader, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            loader.load_config(str(path))

    def test_style_must_be_mapping(self, loader, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("style: large\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            loader.load_config(str(path))

    def test_load_or_default_without_file(self, loader, tmp_path):
        config = loader.load_or_default(str(tmp_path / "absent.yaml"))
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG


class TestExpandPath:

    def test_none_passes_through(self):
        assert expand_path(None) is None

    def test_home_is_expanded(self):
        assert expand_path("~/models") == os.path.abspath(os.path.expanduser("~/models"))

    def test_env_vars_are_expanded(self, monkeypatch, tmp_path):
        monkeypatch.setenv("WHISPERBURN_TEST_DIR", str(tmp_path))
        assert expand_path("$WHISPERBURN_TEST_DIR/out") == os.path.join(str(tmp_path), "out")
