"""Settings file loading and saving.

Supports loading settings from YAML and TOML files with:
- Automatic format detection
- Error reporting with file location
- Default values when the file does not exist yet

Settings are always written back as YAML.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from feedpublish.config.models import DEFAULT_CONFIG_DIR, FeedPublishSettings
from feedpublish.exceptions import ConfigurationError

# Import tomli for Python < 3.11, tomllib for 3.11+
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = DEFAULT_CONFIG_DIR / "settings.yml"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML settings file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML as dictionary

    Raises:
        ConfigurationError: If file cannot be read or parsed
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if data else {}
    except FileNotFoundError:
        raise ConfigurationError(
            f"Settings file not found: {path}",
            fix_hint="Run 'feedpublish config show --write' to create one",
        ) from None
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in {path}",
            details=str(e),
            fix_hint="Check YAML syntax at the indicated line",
        ) from e


def load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML settings file.

    Args:
        path: Path to the TOML file

    Returns:
        Parsed TOML as dictionary

    Raises:
        ConfigurationError: If file cannot be read or parsed
    """
    try:
        with open(path, "rb") as f:
            data: dict[str, Any] = tomllib.load(f)
            return data
    except FileNotFoundError:
        raise ConfigurationError(
            f"Settings file not found: {path}",
            fix_hint="Run 'feedpublish config show --write' to create one",
        ) from None
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            f"Invalid TOML in {path}",
            details=str(e),
            fix_hint="Check TOML syntax at the indicated line",
        ) from e


def load_settings(
    path: Path | None = None,
    missing_ok: bool = True,
) -> FeedPublishSettings:
    """Load settings from file.

    Args:
        path: Settings file (defaults to ~/.config/feedpublish/settings.yml)
        missing_ok: Return defaults instead of failing when the file is absent

    Returns:
        Validated FeedPublishSettings instance

    Raises:
        ConfigurationError: If the file is missing (and not missing_ok) or invalid
    """
    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH

    if not settings_path.exists():
        if not missing_ok:
            raise ConfigurationError(
                f"Settings file not found: {settings_path}",
                fix_hint="Run 'feedpublish config show --write' to create one",
            )
        logger.debug("No settings file at %s, using defaults", settings_path)
        data: dict[str, Any] = {}
    elif settings_path.suffix in (".yml", ".yaml"):
        data = load_yaml(settings_path)
    elif settings_path.suffix == ".toml":
        data = load_toml(settings_path)
    else:
        raise ConfigurationError(
            f"Unsupported settings format: {settings_path.suffix}",
            fix_hint="Use .yml, .yaml, or .toml extension",
        )

    try:
        return FeedPublishSettings(**data)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid settings in {settings_path}",
            details=str(e),
            fix_hint="Check the settings values match expected types",
        ) from e


def save_settings(settings: FeedPublishSettings, path: Path | None = None) -> Path:
    """Write settings to a YAML file, creating parent directories.

    Args:
        settings: Settings to persist
        path: Destination (defaults to ~/.config/feedpublish/settings.yml)

    Returns:
        Path that was written

    Raises:
        ConfigurationError: If the file cannot be written
    """
    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
    data = settings.model_dump(mode="json")

    try:
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        with open(settings_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot write settings to {settings_path}",
            details=str(e),
        ) from e

    logger.debug("Settings written to %s", settings_path)
    return settings_path


class SettingsManager:
    """Holds the loaded settings and persists changes made by a session.

    When constructed without a path the settings live in memory only.
    """

    def __init__(
        self,
        settings: FeedPublishSettings | None = None,
        path: Path | None = None,
    ) -> None:
        self.settings = settings if settings is not None else FeedPublishSettings()
        self.path = path

    @classmethod
    def load(cls, path: Path | None = None) -> "SettingsManager":
        settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
        return cls(load_settings(settings_path), settings_path)

    @property
    def use_v1_protocol(self) -> bool:
        return self.settings.use_v1_protocol

    @use_v1_protocol.setter
    def use_v1_protocol(self, value: bool) -> None:
        self.settings.use_v1_protocol = bool(value)
        self.save()

    def save(self) -> None:
        if self.path is not None:
            save_settings(self.settings, self.path)
