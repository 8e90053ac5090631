"""Unit tests for settings loading and saving.

Tests cover:
- YAML file loading (load_yaml)
- TOML file loading (load_toml)
- Settings loading with defaults for missing files (load_settings)
- Saving and reloading (save_settings)
- SettingsManager persistence of the default protocol
"""

from pathlib import Path

import pytest
import yaml

from feedpublish.config.loader import (
    SettingsManager,
    load_settings,
    load_toml,
    load_yaml,
    save_settings,
)
from feedpublish.config.models import FeedPublishSettings
from feedpublish.exceptions import ConfigurationError


class TestLoadYaml:
    """Tests for load_yaml function."""

    def test_load_valid_yaml(self, temp_dir: Path) -> None:
        """load_yaml parses valid YAML file into dictionary."""
        yaml_file = temp_dir / "settings.yml"
        yaml_file.write_text(yaml.safe_dump({"use_v1_protocol": False}))

        assert load_yaml(yaml_file) == {"use_v1_protocol": False}

    def test_load_empty_yaml(self, temp_dir: Path) -> None:
        """load_yaml returns empty dict for empty YAML file."""
        yaml_file = temp_dir / "empty.yml"
        yaml_file.write_text("")

        assert load_yaml(yaml_file) == {}

    def test_load_missing_yaml(self, temp_dir: Path) -> None:
        """load_yaml raises ConfigurationError for missing file."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_yaml(temp_dir / "nonexistent.yml")
        assert "not found" in str(exc_info.value)
        assert exc_info.value.fix_hint is not None

    def test_load_invalid_yaml(self, temp_dir: Path) -> None:
        """load_yaml raises ConfigurationError for malformed YAML."""
        yaml_file = temp_dir / "invalid.yml"
        yaml_file.write_text("foo: [bar: baz")

        with pytest.raises(ConfigurationError) as exc_info:
            load_yaml(yaml_file)
        assert "Invalid YAML" in str(exc_info.value)


class TestLoadToml:
    """Tests for load_toml function."""

    def test_load_valid_toml(self, temp_dir: Path) -> None:
        toml_file = temp_dir / "settings.toml"
        toml_file.write_text('use_v1_protocol = false\n\n[sources]\nitems = ["https://a"]\n')

        result = load_toml(toml_file)
        assert result["use_v1_protocol"] is False
        assert result["sources"]["items"] == ["https://a"]

    def test_load_invalid_toml(self, temp_dir: Path) -> None:
        toml_file = temp_dir / "invalid.toml"
        toml_file.write_text("[sources\nitems = ")

        with pytest.raises(ConfigurationError) as exc_info:
            load_toml(toml_file)
        assert "Invalid TOML" in str(exc_info.value)


@pytest.mark.usefixtures("clean_env")
class TestLoadSettings:
    """Tests for load_settings function."""

    def test_missing_file_gives_defaults(self, temp_dir: Path) -> None:
        settings = load_settings(temp_dir / "settings.yml")
        assert settings.use_v1_protocol is True
        assert settings.sources.items == []
        assert settings.sources.max_items == 5

    def test_missing_file_not_ok(self, temp_dir: Path) -> None:
        with pytest.raises(ConfigurationError):
            load_settings(temp_dir / "settings.yml", missing_ok=False)

    def test_loads_yaml_values(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yml"
        path.write_text(
            yaml.safe_dump(
                {
                    "use_v1_protocol": False,
                    "sources": {"items": ["https://a"], "active": "https://a"},
                    "http": {"timeout_seconds": 30},
                }
            )
        )

        settings = load_settings(path)

        assert settings.use_v1_protocol is False
        assert settings.sources.active == "https://a"
        assert settings.http.timeout_seconds == 30

    def test_invalid_values_raise(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yml"
        path.write_text(yaml.safe_dump({"http": {"timeout_seconds": 0}}))

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(path)
        assert "Invalid settings" in str(exc_info.value)

    def test_unsupported_extension(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.ini"
        path.write_text("[x]")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(path)
        assert "Unsupported" in str(exc_info.value)


@pytest.mark.usefixtures("clean_env")
class TestSaveSettings:
    def test_round_trip(self, temp_dir: Path) -> None:
        settings = FeedPublishSettings(use_v1_protocol=False)
        settings.sources.items = ["https://b", "https://a"]
        settings.sources.active = "https://b"
        path = temp_dir / "nested" / "settings.yml"

        assert save_settings(settings, path) == path
        reloaded = load_settings(path)

        assert reloaded.use_v1_protocol is False
        assert reloaded.sources.items == ["https://b", "https://a"]
        assert reloaded.sources.active == "https://b"
        assert reloaded.credentials_file == settings.credentials_file


@pytest.mark.usefixtures("clean_env")
class TestSettingsManager:
    def test_protocol_write_persists(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yml"
        manager = SettingsManager.load(path)
        assert manager.use_v1_protocol is True

        manager.use_v1_protocol = False

        assert load_settings(path).use_v1_protocol is False

    def test_in_memory_manager_does_not_write(self, temp_dir: Path) -> None:
        manager = SettingsManager()
        manager.use_v1_protocol = False
        manager.save()
        assert manager.use_v1_protocol is False
        assert list(temp_dir.iterdir()) == []
