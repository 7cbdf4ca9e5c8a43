"""Unit tests for the Configuration Manager."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from ferron_forge.core.config_manager import DEFAULT_REPOSITORY, ConfigManager, ConfigSchema
from ferron_forge.utils.exceptions import ConfigurationError, ManagerInitializationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop any FERRON_FORGE_ variables inherited from the shell."""
    for name in list(os.environ):
        if name.startswith("FERRON_FORGE_"):
            monkeypatch.delenv(name)


def test_config_schema_default_values() -> None:
    """Test that ConfigSchema provides correct default values."""
    schema = ConfigSchema()

    assert schema.forge["repository"] == DEFAULT_REPOSITORY
    assert schema.forge["reference"] == "main"
    assert schema.forge["output"] == "ferron-custom.zip"
    assert schema.forge["package"] == "ferron"
    assert schema.forge["asset_directory"] == "wwwroot"
    assert schema.logging["level"] == "INFO"
    assert schema.logging["format"] == "text"
    assert schema.logging["file"]["enabled"] is False


def test_config_schema_rejects_empty_forge_values() -> None:
    """Test validation of the build settings."""
    config = ConfigSchema().model_dump()
    config["forge"]["reference"] = "  "

    with pytest.raises(ValueError, match="forge.reference must be a non-empty string"):
        ConfigSchema(**config)


def test_config_schema_rejects_unknown_log_format() -> None:
    config = ConfigSchema().model_dump()
    config["logging"]["format"] = "xml"

    with pytest.raises(ValueError, match="logging.format must be either"):
        ConfigSchema(**config)


def test_config_manager_defaults_without_file() -> None:
    """Test that a manager without a settings file serves the defaults."""
    manager = ConfigManager()
    manager.initialize()

    assert manager.initialized
    assert manager.healthy
    assert manager.get("forge.reference") == "main"
    assert manager.get("logging.console.enabled") is True
    assert manager.status()["loaded_from_file"] is False

    manager.shutdown()
    assert not manager.initialized


def test_config_manager_yaml_file(settings_file) -> None:
    """Test loading configuration from a YAML file."""
    path = settings_file({
        "forge": {"reference": "v1.2.3", "repository": "https://example.com/ferron.git"},
        "logging": {"console": {"level": "DEBUG"}},
    })

    manager = ConfigManager(config_path=path)
    manager.initialize()

    assert manager.get("forge.reference") == "v1.2.3"
    assert manager.get("forge.repository") == "https://example.com/ferron.git"
    # Keys missing from the file keep their defaults
    assert manager.get("forge.output") == "ferron-custom.zip"
    assert manager.get("logging.console.level") == "DEBUG"
    assert manager.get("logging.console.enabled") is True

    status = manager.status()
    assert status["loaded_from_file"] is True
    assert status["config_path"] == str(path)


def test_config_manager_json_file(tmp_path: Path) -> None:
    """Test loading configuration from a JSON file."""
    config_file = tmp_path / "config.json"
    with config_file.open("w") as f:
        json.dump({"forge": {"output": "dist/ferron.zip"}}, f)

    manager = ConfigManager(config_path=config_file)
    manager.initialize()

    assert manager.get("forge.output") == "dist/ferron.zip"


def test_config_manager_nonexistent_file(tmp_path: Path) -> None:
    """Test initialization with a non-existent file path."""
    manager = ConfigManager(config_path=tmp_path / "missing.yaml")

    with pytest.raises(ManagerInitializationError, match="Config file not found"):
        manager.initialize()
    assert not manager.initialized


def test_config_manager_unsupported_format(tmp_path: Path) -> None:
    config_file = tmp_path / "config.ini"
    config_file.write_text("[forge]\n")

    with pytest.raises(ManagerInitializationError, match="Unsupported config file format"):
        ConfigManager(config_path=config_file).initialize()


def test_config_manager_invalid_yaml(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("forge: [unclosed\n")

    with pytest.raises(ManagerInitializationError, match="Error parsing config file"):
        ConfigManager(config_path=config_file).initialize()


def test_config_manager_non_mapping_file(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- main\n- v1.2.3\n")

    with pytest.raises(ManagerInitializationError, match="must contain a mapping"):
        ConfigManager(config_path=config_file).initialize()


def test_config_manager_invalid_values(settings_file) -> None:
    path = settings_file({"forge": {"package": ""}})

    with pytest.raises(ManagerInitializationError, match="Invalid configuration"):
        ConfigManager(config_path=path).initialize()


def test_config_manager_environment_overrides(settings_file, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that environment variables win over the settings file."""
    path = settings_file({"forge": {"reference": "v1.0.0"}})
    monkeypatch.setenv("FERRON_FORGE_FORGE_REFERENCE", "develop")
    monkeypatch.setenv("FERRON_FORGE_FORGE_ASSET_DIRECTORY", "public")
    monkeypatch.setenv("FERRON_FORGE_LOGGING_FILE_ENABLED", "yes")
    monkeypatch.setenv("FERRON_FORGE_LOGGING_CONSOLE_LEVEL", "debug")

    manager = ConfigManager(config_path=path)
    manager.initialize()

    assert manager.get("forge.reference") == "develop"
    assert manager.get("forge.asset_directory") == "public"
    assert manager.get("logging.file.enabled") is True
    assert manager.get("logging.console.level") == "debug"
    assert "FERRON_FORGE_FORGE_REFERENCE" in manager.status()["env_vars_applied"]


@pytest.mark.parametrize("value, expected", [
    ("true", True),
    ("On", True),
    ("no", False),
    ("42", 42),
    ("-3", -3),
    ("1.5", 1.5),
    ("main", "main"),
])
def test_parse_env_value(value: str, expected) -> None:
    assert ConfigManager._parse_env_value(value) == expected


def test_get_missing_key_returns_default() -> None:
    manager = ConfigManager()
    manager.initialize()

    assert manager.get("forge.nonexistent") is None
    assert manager.get("forge.nonexistent", "fallback") == "fallback"
    assert manager.get("forge.reference.deeper", "fallback") == "fallback"


def test_get_before_initialize() -> None:
    with pytest.raises(ConfigurationError, match="before initialization"):
        ConfigManager().get("forge.reference")


def test_set_value() -> None:
    manager = ConfigManager()
    manager.initialize()

    manager.set("logging.level", "debug")
    assert manager.get("logging.level") == "debug"


def test_set_invalid_value_rolls_back() -> None:
    manager = ConfigManager()
    manager.initialize()

    with pytest.raises(ConfigurationError):
        manager.set("logging.format", "xml")
    assert manager.get("logging.format") == "text"


def test_set_before_initialize() -> None:
    with pytest.raises(ConfigurationError, match="before initialization"):
        ConfigManager().set("forge.reference", "main")


@pytest.mark.parametrize("reference", ["2.0", "0012345", "true"])
def test_environment_override_keeps_string_settings_verbatim(reference: str, monkeypatch: pytest.MonkeyPatch) -> None:
    """Numeric-looking git references are not coerced."""
    monkeypatch.setenv("FERRON_FORGE_FORGE_REFERENCE", reference)

    manager = ConfigManager()
    manager.initialize()

    assert manager.get("forge.reference") == reference


def test_environment_override_parses_non_string_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FERRON_FORGE_LOGGING_CONSOLE_ENABLED", "off")

    manager = ConfigManager()
    manager.initialize()

    assert manager.get("logging.console.enabled") is False
