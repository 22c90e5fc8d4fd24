"""Unit tests for the Configuration Manager."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
import yaml

from plugpack.build.config import BuildMode
from plugpack.core.config_manager import ConfigManager, load_config
from plugpack.utils.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop PLUGPACK_ variables inherited from the outer environment."""
    for name in list(os.environ):
        if name.startswith("PLUGPACK_"):
            monkeypatch.delenv(name)


def test_defaults_without_file() -> None:
    """Test that no file gives the schema defaults."""
    manager = ConfigManager()
    config = manager.load()
    assert config.name == "plugin"
    assert config.mode == BuildMode.BUNDLE
    assert manager.loaded_from_file is False


def test_yaml_file(tmp_path: Path) -> None:
    """Test loading configuration from a YAML file."""
    config_file = tmp_path / "plugpack.yaml"
    config_file.write_text(yaml.safe_dump({
        "name": "my-plugin",
        "version": "1.2",
        "mode": "link",
        "metadata": {"long_name": "My Plugin"},
    }), encoding="utf-8")

    manager = ConfigManager(config_file)
    config = manager.load()

    assert manager.loaded_from_file is True
    assert config.name == "my-plugin"
    assert config.mode == BuildMode.LINK
    assert config.metadata.long_name == "My Plugin"
    assert config.base_dir == tmp_path


def test_json_file_relative_base_dir(tmp_path: Path) -> None:
    """Test that a relative base_dir resolves against the file's directory."""
    config_file = tmp_path / "conf" / "plugpack.json"
    config_file.parent.mkdir()
    config_file.write_text(json.dumps({"base_dir": "../project"}), encoding="utf-8")

    config = load_config(config_file)
    assert config.base_dir == tmp_path / "conf" / "../project"
    assert config.get_output_path(".hpi").parent == (tmp_path / "conf" / "../project" / "target").absolute()


@pytest.mark.parametrize("name,content,match", [
    ("missing.yaml", None, "not found"),
    ("config.toml", "name = 'x'", "Unsupported"),
    ("config.yaml", "name: [unclosed", "Error parsing"),
    ("config.json", "[1, 2]", "must contain a mapping"),
])
def test_file_errors(tmp_path: Path, name: str, content: str, match: str) -> None:
    """Test that unreadable or malformed files raise ConfigurationError."""
    config_file = tmp_path / name
    if content is not None:
        config_file.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError, match=match) as excinfo:
        ConfigManager(config_file).load()
    assert excinfo.value.config_key == "config_path"


def test_empty_file(tmp_path: Path) -> None:
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("", encoding="utf-8")
    assert ConfigManager(config_file).load().name == "plugin"


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that environment variables override the file, nested keys included."""
    config_file = tmp_path / "plugpack.yaml"
    config_file.write_text(yaml.safe_dump({"name": "my-plugin", "logging": {"format": "json"}}),
                           encoding="utf-8")
    monkeypatch.setenv("PLUGPACK_HOST_HOME", str(tmp_path / "host"))
    monkeypatch.setenv("PLUGPACK_LOGGING__LEVEL", "DEBUG")
    monkeypatch.setenv("PLUGPACK_NAME", "from-env")
    monkeypatch.setenv("PLUGPACK_VERSION", "1.10")

    manager = ConfigManager(config_file)
    config = manager.load()

    assert config.host_home == tmp_path / "host"
    assert config.name == "from-env"
    assert config.version == "1.10"
    assert config.logging == {"format": "json", "level": "DEBUG"}
    assert manager.env_vars_applied == {
        "PLUGPACK_HOST_HOME", "PLUGPACK_LOGGING__LEVEL", "PLUGPACK_NAME", "PLUGPACK_VERSION"
    }


def test_overrides_win(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that explicit overrides beat the environment and None is ignored."""
    monkeypatch.setenv("PLUGPACK_MODE", "bundle")
    config = load_config(overrides={"mode": "link", "host_home": None})
    assert config.mode == BuildMode.LINK
    assert config.host_home is None


@pytest.mark.parametrize("value,expected", [
    ("true", True),
    ("Off", False),
    ("42", "42"),
    ("1.10", "1.10"),
    ("/opt/jenkins", "/opt/jenkins"),
])
def test_parse_env_value(value: str, expected: object) -> None:
    assert ConfigManager._parse_env_value(value) == expected


def test_validation_error() -> None:
    """Test that schema violations become a ConfigurationError."""
    with pytest.raises(ConfigurationError, match="Invalid configuration") as excinfo:
        load_config(overrides={"bundle_extension": "hpi"})
    errors = excinfo.value.details["validation_errors"]
    assert errors[0]["loc"] == ("bundle_extension",)
