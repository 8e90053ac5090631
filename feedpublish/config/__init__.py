"""Settings management for feedpublish."""

from feedpublish.config.loader import (
    DEFAULT_SETTINGS_PATH,
    SettingsManager,
    load_settings,
    save_settings,
)
from feedpublish.config.models import FeedPublishSettings, HttpConfig, SourcesConfig

__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "FeedPublishSettings",
    "HttpConfig",
    "SettingsManager",
    "SourcesConfig",
    "load_settings",
    "save_settings",
]
