"""Unit tests for configuration management module."""

import json
import os
from pathlib import Path
from typing import Any

import pytest
import yaml
from pydantic import ValidationError

from dagengine.config import (
    EngineConfig,
    OutputConfig,
    RenderConfig,
    get_config,
    load_config,
    reset_config,
)


@pytest.fixture
def valid_config_dict() -> dict[str, Any]:
    """Fixture providing valid configuration dictionary."""
    return {
        "output": {
            "format": "json",
            "sort_within_layers": False,
        },
        "render": {
            "format": "dot",
        },
        "logging_level": "DEBUG",
        "json_logs": True,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, valid_config_dict: dict[str, Any]) -> Path:
    """Fixture providing temporary YAML config file."""
    config_path = tmp_path / "config.yaml"
    with config_path.open("w") as f:
        yaml.dump(valid_config_dict, f)
    return config_path


@pytest.fixture(autouse=True)
def reset_config_singleton():
    """Reset configuration singleton before and after each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def clean_env_vars(monkeypatch):
    """Clean environment variables before each test."""
    for key in list(os.environ.keys()):
        if key.startswith("DAGENGINE_"):
            monkeypatch.delenv(key, raising=False)


class TestModels:
    """Tests for the configuration models."""

    def test_defaults(self):
        """Test default configuration values."""
        config = EngineConfig()

        assert config.output.format == "text"
        assert config.output.sort_within_layers is True
        assert config.render.format == "mermaid"
        assert config.logging_level == "INFO"
        assert config.json_logs is False

    def test_invalid_output_format(self):
        """Test OutputConfig rejects unknown formats."""
        with pytest.raises(ValidationError):
            OutputConfig(format="xml")

    def test_invalid_render_format(self):
        """Test RenderConfig rejects unknown formats."""
        with pytest.raises(ValidationError):
            RenderConfig(format="svg")

    def test_logging_level_validation(self):
        """Test that only standard level names are accepted."""
        for level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            assert EngineConfig(logging_level=level).logging_level == level

        with pytest.raises(ValidationError):
            EngineConfig(logging_level="VERBOSE")


class TestLoadConfig:
    """Tests for loading configuration files."""

    def test_load_yaml_config(self, temp_config_file):
        """Test loading a YAML configuration file."""
        config = load_config(temp_config_file)

        assert config.output.format == "json"
        assert config.output.sort_within_layers is False
        assert config.render.format == "dot"
        assert config.logging_level == "DEBUG"
        assert config.json_logs is True

    def test_load_json_config(self, tmp_path, valid_config_dict):
        """Test loading a JSON configuration file."""
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps(valid_config_dict))

        assert load_config(config_path).render.format == "dot"

    def test_load_config_not_found(self, tmp_path):
        """Test that an explicit missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.yaml")

    def test_load_config_invalid_yaml(self, tmp_path):
        """Test that malformed YAML raises ValueError."""
        config_path = tmp_path / "invalid.yaml"
        config_path.write_text("output: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(config_path)

    def test_load_config_not_a_mapping(self, tmp_path):
        """Test that a top-level list is rejected."""
        config_path = tmp_path / "list.yaml"
        config_path.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="must contain a mapping"):
            load_config(config_path)

    def test_load_config_validation_error(self, tmp_path):
        """Test that invalid values raise a ValidationError."""
        config_path = tmp_path / "bad.yaml"
        config_path.write_text("output:\n  format: xml\n")

        with pytest.raises(ValidationError):
            load_config(config_path)

    def test_empty_file_gives_defaults(self, tmp_path):
        """Test that an empty configuration file yields defaults."""
        config_path = tmp_path / "empty.yaml"
        config_path.write_text("")

        assert load_config(config_path) == EngineConfig()

    def test_load_config_default_location(self, tmp_path, valid_config_dict, monkeypatch):
        """Test loading dagengine.yaml from the current directory."""
        monkeypatch.chdir(tmp_path)
        with (tmp_path / "dagengine.yaml").open("w") as f:
            yaml.dump(valid_config_dict, f)

        assert load_config().output.format == "json"

    def test_load_config_no_default_file(self, tmp_path, monkeypatch):
        """Test that defaults are used when no config file exists."""
        monkeypatch.chdir(tmp_path)

        assert load_config() == EngineConfig()


class TestEnvironmentVariableOverrides:
    """Tests for environment variable overrides."""

    def test_logging_level_override(self, temp_config_file, monkeypatch):
        """Test overriding the logging level."""
        monkeypatch.setenv("DAGENGINE_LOGGING_LEVEL", "warning")

        assert load_config(temp_config_file).logging_level == "WARNING"

    def test_nested_override(self, temp_config_file, monkeypatch):
        """Test overriding a nested value."""
        monkeypatch.setenv("DAGENGINE_RENDER_FORMAT", "mermaid")

        assert load_config(temp_config_file).render.format == "mermaid"

    def test_bool_override(self, temp_config_file, monkeypatch):
        """Test boolean parsing of overrides."""
        monkeypatch.setenv("DAGENGINE_SORT_WITHIN_LAYERS", "yes")
        monkeypatch.setenv("DAGENGINE_JSON_LOGS", "0")

        config = load_config(temp_config_file)

        assert config.output.sort_within_layers is True
        assert config.json_logs is False

    def test_override_without_config_file(self, tmp_path, monkeypatch):
        """Test that overrides apply on top of defaults."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DAGENGINE_OUTPUT_FORMAT", "json")

        config = load_config()

        assert config.output.format == "json"
        assert config.render.format == "mermaid"


class TestGetConfig:
    """Tests for the configuration singleton."""

    def test_get_config_singleton(self, temp_config_file):
        """Test that get_config returns the same instance."""
        first = get_config(temp_config_file)
        second = get_config()

        assert first is second

    def test_get_config_reload(self, temp_config_file, tmp_path):
        """Test that reload=True reads the file again."""
        first = get_config(temp_config_file)

        other_path = tmp_path / "other.yaml"
        other_path.write_text("logging_level: ERROR\n")
        reloaded = get_config(other_path, reload=True)

        assert reloaded is not first
        assert reloaded.logging_level == "ERROR"

    def test_reset_config(self, temp_config_file):
        """Test that reset_config clears the singleton."""
        first = get_config(temp_config_file)
        reset_config()
        second = get_config(temp_config_file)

        assert first is not second
